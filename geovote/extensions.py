from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_marshmallow import Marshmallow
from flask_mail import Mail

from .utils.cache import ReadCache
from .utils.rate_limit import RateLimiter

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
ma = Marshmallow()
mail = Mail()

# Process-local stores; see utils/rate_limit.py and utils/cache.py for the
# shared-backend extension points.
rate_limiter = RateLimiter()
read_cache = ReadCache()
