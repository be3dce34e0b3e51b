from api.database import engine
from api.main import app
from api.models import Base

Base.metadata.create_all(bind=engine)

__all__ = ["app"]
