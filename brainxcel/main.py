import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import auth, billing, courses, users
from .config import Settings, load_settings
from .db import build_engine, build_sessionmaker, init_db
from .errors import install_error_handlers, ok
from .gateway import PaymentGateway, StripeGateway
from .mailer import EmailSender, SmtpMailer


def create_app(settings: Settings | None = None, gateway: PaymentGateway | None = None,
               mailer: EmailSender | None = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = FastAPI(title="BrainXcel LMS")
    engine = build_engine(settings.database_url)
    init_db(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_sessionmaker(engine)
    app.state.gateway = gateway or StripeGateway(settings.stripe_secret_key)
    app.state.mailer = mailer or SmtpMailer(settings)

    origins = [o.strip() for o in settings.cors_origin.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    @app.get("/health")
    def health():
        return ok("Server is up and running")

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(courses.router)
    app.include_router(billing.router)
    return app
