"""初始化数据库并写入演示数据

用法：
    python scripts/init_db.py            # 使用 DATABASE_URL
    python scripts/init_db.py --no-seed  # 只建表
"""
import argparse
import os
import sys
from datetime import date, timedelta

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loguru import logger

from business.collaborators import CollaboratorSync
from business.records import RecordService
from database import DatabaseManager
from database.models import Client


def seed_demo_data(db: DatabaseManager, today: date = None) -> None:
    """写入演示数据（已有客户时跳过）"""
    today = today or date.today()
    if db.clients.count(Client) > 0:
        logger.info("Clients already exist, skip seeding")
        return

    records = RecordService(db)
    db.users.get_or_create("관리자", "admin@example.com")

    brand = records.create_client({
        "name": "뷰티랩", "contactName": "김담당", "phone": "010-1234-5678",
        "industry": "뷰티",
    })
    vendor = records.create_client({
        "name": "헬시푸드", "contactName": "이매니저", "phone": "010-2222-3333",
        "industry": "식품", "isFixedVendor": True, "monthlyFee": 1500000,
    })
    logger.info(f"Created clients: {brand['name']}, {vendor['name']}")

    influencers = [
        records.create_influencer({
            "name": name, "instagramId": insta, "categories": categories,
            "bankName": "국민은행", "bankAccount": account, "accountHolder": name,
        })
        for name, insta, categories, account in (
            ("지수", "jisoo_daily", ["뷰티", "라이프"], "123-45-678"),
            ("민호", "minho_eats", ["푸드"], "234-56-789"),
            ("하나", "hana.style", ["패션", "뷰티"], "345-67-890"),
        )
    ]
    logger.info(f"Created {len(influencers)} influencers")

    campaign = records.create_project({
        "name": "봄 시즌 캠페인", "clientId": brand["id"], "status": "IN_PROGRESS",
        "startDate": (today - timedelta(days=14)).isoformat(),
        "endDate": (today + timedelta(days=10)).isoformat(),
        "contractAmount": 5000000, "platforms": ["INSTAGRAM", "YOUTUBE"],
    })
    finished = records.create_project({
        "name": "신제품 런칭", "clientId": vendor["id"], "status": "COMPLETED",
        "startDate": (today - timedelta(days=60)).isoformat(),
        "endDate": (today - timedelta(days=35)).isoformat(),
        "contractAmount": 3000000,
    })

    sync = CollaboratorSync(db)
    sync.sync_payload(campaign["id"], {"collaborators": [
        {"influencerId": influencers[0]["id"], "fee": 500000,
         "paymentDueDate": (today + timedelta(days=3)).isoformat()},
        {"influencerId": influencers[2]["id"], "fee": 400000,
         "paymentStatus": "in_progress",
         "paymentDueDate": (today + timedelta(days=7)).isoformat()},
    ]})
    sync.sync_payload(finished["id"], {"collaborators": [
        {"influencerId": influencers[1]["id"], "fee": 300000,
         "paymentStatus": "completed",
         "paymentDueDate": (today - timedelta(days=30)).isoformat(),
         "paymentDate": (today - timedelta(days=31)).isoformat()},
    ]})

    for tx in (
        {"date": today.isoformat(), "type": "REVENUE", "category": "CAMPAIGN_FEE",
         "amount": 2500000, "clientId": brand["id"], "projectId": campaign["id"]},
        {"date": today.isoformat(), "type": "EXPENSE", "category": "AD_EXPENSE",
         "amount": 800000, "projectId": campaign["id"]},
        {"date": (today - timedelta(days=35)).isoformat(), "type": "REVENUE",
         "category": "PROJECT_MANAGEMENT", "amount": 3000000,
         "clientId": vendor["id"], "projectId": finished["id"]},
    ):
        records.create_transaction(tx)

    records.create_document({"type": "QUOTE", "clientId": brand["id"],
                             "projectId": campaign["id"], "amount": 5000000})
    records.create_calendar_event({
        "title": "뷰티랩 킥오프 미팅", "type": "MEETING",
        "date": f"{(today + timedelta(days=1)).isoformat()}T10:00:00",
        "projectId": campaign["id"],
    })
    logger.info("Demo data inserted")


def init_database(database_url: str = None, seed: bool = True) -> None:
    """创建所有表并（可选）写入演示数据"""
    logger.info("Initializing database...")
    db = DatabaseManager(database_url)
    try:
        logger.info("Creating tables...")
        db.create_tables()
        if seed:
            logger.info("Inserting seed data...")
            seed_demo_data(db)
    finally:
        db.close()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="初始化数据库")
    parser.add_argument("--db", default=None, help="数据库连接 URL")
    parser.add_argument("--no-seed", action="store_true", help="只建表，不写入演示数据")
    args = parser.parse_args()
    init_database(args.db, seed=not args.no_seed)
