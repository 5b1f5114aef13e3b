from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models import Base from here; crisp.db.models registers all of them
# before create_all() runs in init_db().
