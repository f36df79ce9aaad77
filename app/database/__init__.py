from .unified_models import Base, Profile, SignupEmail, CreditHistory, Generation, EarlyAccessSignup
from .connection import init_database, close_database, create_tables, get_session
