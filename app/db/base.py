from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models register themselves by importing Base; app.db.models imports all of them
