import logging
import os
import sys
from datetime import date

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

if __name__ == "__main__":
    try:
        project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        sys.path.insert(0, project_root)
        os.chdir(project_root)

        # Imported after the path change so the api package resolves
        from api.database import DATABASE_URL, get_db, engine
        from api.models import Base
        from scripts.insert_dummy_data import insert_data

        trip_date = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else date.today()

        if DATABASE_URL.startswith("sqlite:///"):
            db_path = DATABASE_URL[len("sqlite:///"):]
            if os.path.exists(db_path):
                os.remove(db_path)
                logger.info(f"Existing {db_path} removed.")
        else:
            logger.info("Dropping existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully.")

        with next(get_db()) as db:
            insert_data(db, trip_date)

    except Exception as e:
        logger.error(f"An error occurred during database setup: {e}")
