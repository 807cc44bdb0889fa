from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_talisman import Talisman


db = SQLAlchemy(session_options={"expire_on_commit": False})
migrate = Migrate()
cors = CORS()
talisman = Talisman()
# remote_addr ya viene corregido por ProxyFix según los saltos de confianza
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # Sin límites globales: el blueprint /api declara el suyo
    storage_uri="memory://",
    strategy="moving-window",
)
