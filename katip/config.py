# -- config.py (ortam değişkenlerinden çalışma ayarları) --
# KATIP_SERVICE_DATABASE_URL: RLS'yi aşan servis yetkisiyle depo adresi
# KATIP_JWT_SECRET / KATIP_JWT_AUDIENCE: kimlik token'ı; secret yoksa userId olduğu gibi kabul edilir
# KATIP_CORS_ORIGINS: virgülle ayrılmış origin listesi (varsayılan *)
# UYUMSOFT_TEST_MODE ("false" dışında her değer test ucu), UYUMSOFT_BASE_URL/USERNAME/PASSWORD/TIMEOUT
# KATIP_HOST, KATIP_PORT: `katip` komutunun dinlediği adres
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

DEFAULT_DB_URL = "sqlite:///./katip.db"
UYUMSOFT_TEST_URL = "http://efatura-test.uyumsoft.com.tr"
UYUMSOFT_LIVE_URL = "https://efatura.uyumsoft.com.tr"

@dataclass(frozen=True)
class Settings:
    service_database_url: str = DEFAULT_DB_URL
    jwt_secret: Optional[str] = None; jwt_algorithm: str = "HS256"; jwt_audience: Optional[str] = None
    cors_origins: Tuple[str, ...] = ("*",)
    uyumsoft_test_mode: bool = True
    uyumsoft_base_url: str = UYUMSOFT_LIVE_URL
    uyumsoft_username: str = "Uyumsoft"
    uyumsoft_password: str = field(default="Uyumsoft", repr=False)
    uyumsoft_timeout: float = 30.0
    host: str = "127.0.0.1"; port: int = 8000

    @property
    def uyumsoft_endpoint(self)->str:
        # test ortamında BasicIntegration, canlıda Integration
        if self.uyumsoft_test_mode: return f"{UYUMSOFT_TEST_URL}/Services/BasicIntegration"
        return f"{self.uyumsoft_base_url.rstrip('/')}/Services/Integration"

def load_settings(env:Optional[Mapping[str, str]]=None)->Settings:
    env = os.environ if env is None else env
    origins = tuple(o.strip() for o in env.get("KATIP_CORS_ORIGINS", "*").split(",") if o.strip())
    return Settings(
        service_database_url=env.get("KATIP_SERVICE_DATABASE_URL", DEFAULT_DB_URL),
        jwt_secret=env.get("KATIP_JWT_SECRET") or None,
        jwt_audience=env.get("KATIP_JWT_AUDIENCE") or None,
        cors_origins=origins or ("*",),
        uyumsoft_test_mode=env.get("UYUMSOFT_TEST_MODE", "true").lower() != "false",
        uyumsoft_base_url=env.get("UYUMSOFT_BASE_URL") or UYUMSOFT_LIVE_URL,
        uyumsoft_username=env.get("UYUMSOFT_USERNAME", "Uyumsoft"),
        uyumsoft_password=env.get("UYUMSOFT_PASSWORD", "Uyumsoft"),
        uyumsoft_timeout=float(env.get("UYUMSOFT_TIMEOUT", "30")),
        host=env.get("KATIP_HOST", "127.0.0.1"), port=int(env.get("KATIP_PORT", "8000")),
    )
