from dotenv import load_dotenv
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

load_dotenv(".env")

from spotch.core.database import Base, SessionLocal, engine, unit_of_work
from spotch.models.badge import Badge
from spotch.models.coupon import Coupon
from spotch.models.quest import Quest, QuestCondition

logger = logging.getLogger("seed_catalog")

QUESTS = [
    ("First Step", "Visit your first spot to start your journey.", 100, QuestCondition.VISIT_COUNT, 1),
    ("Explorer", "Visit 5 different spots.", 500, QuestCondition.VISIT_COUNT, 5),
    ("Social Butterfly", "Connect with 3 other users.", 300, QuestCondition.FRIEND_COUNT, 3),
    ("V.I.P.", "Become a Premium Member.", 1000, QuestCondition.PREMIUM_STATUS, 1),
]

BADGES = [
    ("First Step", "Check in to your first spot.", "visits", 1),
    ("Explorer I", "Visit 10 different spots.", "visits", 10),
    ("Explorer II", "Visit 50 different spots.", "visits", 50),
    ("Creator I", "Create your first spot.", "spots_created", 1),
    ("Creator II", "Create 5 spots.", "spots_created", 5),
    ("High Roller", "Earn 10,000 Points.", "points", 10000),
    ("Veteran", "Reach level 10.", "level", 10),
]

# name, cost, kind, stock (None is unlimited), fulfilment reference
COUPONS = [
    ("Amazon Gift Card 500 JPY", 5000, "gift_card", 10, "amazon_jp_500"),
    ("Starbucks Ticket 500 JPY", 5000, "gift_card", 10, "starbucks_jp_500"),
    ("UNICEF Donation (100 JPY)", 1000, "donation", None, "unicef_100"),
]


def seed(db) -> tuple[int, int, int]:
    quests_added = 0
    badges_added = 0
    coupons_added = 0
    with unit_of_work(db):
        known_quests = {title for (title,) in db.query(Quest.title).all()}
        for title, description, reward, condition, value in QUESTS:
            if title in known_quests:
                continue
            db.add(
                Quest(
                    title=title,
                    description=description,
                    reward_points=reward,
                    condition_type=condition.value,
                    condition_value=value,
                )
            )
            quests_added += 1

        known_badges = {name for (name,) in db.query(Badge.name).all()}
        for name, description, condition, value in BADGES:
            if name in known_badges:
                continue
            db.add(Badge(name=name, description=description, condition_type=condition, condition_value=value))
            badges_added += 1

        known_coupons = {name for (name,) in db.query(Coupon.name).all()}
        for name, cost, kind, stock, data in COUPONS:
            if name in known_coupons:
                continue
            db.add(Coupon(name=name, cost=cost, kind=kind, stock=stock, data=data, is_active=True))
            coupons_added += 1
    return quests_added, badges_added, coupons_added


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        quests_added, badges_added, coupons_added = seed(db)
    finally:
        db.close()
    logger.info(
        "seed.done quests_added=%s badges_added=%s coupons_added=%s",
        quests_added,
        badges_added,
        coupons_added,
    )


if __name__ == "__main__":
    main()
