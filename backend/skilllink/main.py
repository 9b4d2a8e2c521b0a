import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from skilllink import config
from skilllink.errors import SkillLinkError
from skilllink.logging_config import setup_logging
from skilllink.notices import skilllink_error_handler
from skilllink.routers import auth, flows, providers

setup_logging(config.LOG_LEVEL, config.LOG_FILE)

app = FastAPI(title="SkillLink API", version="0.1.0")
app.add_exception_handler(SkillLinkError, skilllink_error_handler)

cors_origins = config.parse_csv_env("CORS_ORIGINS", config.PUBLIC_SITE_URL)
allow_any_origin = len(cors_origins) == 1 and cors_origins[0] == "*"

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Browsers reject wildcard CORS with credentials enabled.
    allow_credentials=not allow_any_origin,
    allow_methods=["*"],
    allow_headers=["*"],
)

trusted_hosts = config.parse_csv_env("TRUSTED_HOSTS", "*")
if not (len(trusted_hosts) == 1 and trusted_hosts[0] == "*"):
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

app.include_router(auth.router)
app.include_router(auth.callback_router)
app.include_router(providers.router)
app.include_router(flows.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/ready")
def ready():
    return {
        "status": "ready",
        "backend_url": config.SUPABASE_URL,
        "backend_timeout_seconds": config.BACKEND_TIMEOUT_SECONDS,
    }


def run() -> None:
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT, log_config=None)


if __name__ == "__main__":
    run()
