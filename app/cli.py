"""CLI commands for Foodcheck."""

import argparse
import json
import sys

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.services.general_info_cache import GeneralInfoCache, normalize_food_name
from app.services.medicine_cache_service import MedicineCacheService
from app.services.quota_service import get_quota_gate
from app.services.score_calculator import ScoreCalculator


def score_food(food_name: str, diseases: list[str]) -> None:
    """Print the rule-only score, using cached nutrition when available."""
    food_name = normalize_food_name(food_name)
    if not food_name:
        print("Error: Food name must not be empty.")
        sys.exit(1)

    db: Session = SessionLocal()
    try:
        cached = GeneralInfoCache(db).get(food_name)
        nutrition = cached.nutrition_facts if cached else None

        calculator = ScoreCalculator()
        score = calculator.calculate_score(food_name, diseases, nutrition)

        print(f"Food: {food_name}")
        print(f"Diseases: {', '.join(diseases) if diseases else '(none)'}")
        print(f"Nutrition: {'cached' if nutrition else 'not available'}")
        print(f"Score: {score}")
        print(f"Grade: {calculator.get_grade(score)}")
        print(f"Recommendation: {calculator.get_recommendation_level(score)}")
    finally:
        db.close()


def clear_cache(food_name: str | None = None, medicines: bool = True) -> None:
    """Remove one food from the general info cache, or empty both caches."""
    db: Session = SessionLocal()
    try:
        food_cache = GeneralInfoCache(db)
        if food_name:
            food_name = normalize_food_name(food_name)
            if food_cache.delete(food_name):
                print(f"Removed cached info for '{food_name}'.")
            else:
                print(f"No cached info for '{food_name}'.")
            return

        removed = food_cache.clear()
        print(f"Removed {removed} general food info entries.")
        if medicines:
            removed = MedicineCacheService(db).clear()
            print(f"Removed {removed} medicine search entries.")
    finally:
        db.close()


def show_quota() -> None:
    """Print today's public data usage per category."""
    print(json.dumps(get_quota_gate().get_usage_stats(), indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Foodcheck CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # score command
    score_parser = subparsers.add_parser("score", help="Rule-based suitability score for a food")
    score_parser.add_argument("food_name", help="Food name, e.g. 김치찌개")
    score_parser.add_argument(
        "--disease",
        dest="diseases",
        action="append",
        default=[],
        help="Disease identifier (hypertension, diabetes, hyperlipidemia); repeatable",
    )

    # clear-cache command
    clear_parser = subparsers.add_parser("clear-cache", help="Clear cached food and medicine data")
    clear_parser.add_argument("--food", help="Only remove this food from the general info cache")
    clear_parser.add_argument(
        "--keep-medicines", action="store_true", help="Keep the medicine search cache"
    )

    # quota command
    subparsers.add_parser("quota", help="Show today's public data API usage")

    args = parser.parse_args(argv)

    if args.command == "score":
        score_food(args.food_name, list(dict.fromkeys(args.diseases)))
    elif args.command == "clear-cache":
        clear_cache(args.food, medicines=not args.keep_medicines)
    elif args.command == "quota":
        show_quota()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
