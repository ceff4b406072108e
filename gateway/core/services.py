"""Application services and dependency injection."""

from typing import Optional

from gateway.core.api_keys import KeyValidator
from gateway.core.audit import AuditLogger
from gateway.core.collaborators import AuditSink, EntryStore, KeyStore, Summarizer
from gateway.core.config import Settings
from gateway.core.rate_limit import FixedWindowRateLimiter
from gateway.core.sessions import SessionManager
from gateway.core.tools import ToolContext, build_tools
from gateway.mcp.dispatcher import ToolDispatcher


class ServiceContainer:
    """Container for gateway services.

    Collaborators (key store, entry store, audit sink, optional summarizer)
    are injected; everything holding in-process state is built here so each
    application instance owns exactly one rate limiter and one session table.
    """

    def __init__(
        self,
        settings: Settings,
        key_store: KeyStore,
        entry_store: EntryStore,
        audit_sink: AuditSink,
        summarizer: Optional[Summarizer] = None,
    ):
        self.settings = settings
        self.key_store = key_store
        self.entry_store = entry_store
        self.audit_sink = audit_sink
        self.summarizer = summarizer

        timeout = settings.collaborator_timeout_seconds
        self.key_validator = KeyValidator(key_store, prefix=settings.api_key_prefix, timeout_seconds=timeout)
        self.rate_limiter = FixedWindowRateLimiter(
            read_limit=settings.rate_limit_read_per_minute,
            write_limit=settings.rate_limit_write_per_minute,
            window_seconds=settings.rate_limit_window_seconds,
            storage_uri=settings.rate_limit_storage_uri,
        )
        self.session_manager = SessionManager(
            timeout_seconds=settings.session_timeout_seconds,
            revalidation_interval_seconds=settings.revalidation_interval_seconds,
            max_tool_calls=settings.max_tool_calls_per_session,
        )
        self.audit_logger = AuditLogger(audit_sink, timeout_seconds=timeout)
        self.tool_context = ToolContext(
            entry_store=entry_store,
            timeout_seconds=timeout,
            summarizer=summarizer,
            summarize_max_days=settings.summarize_max_days,
            summarize_max_tokens=settings.summarize_max_tokens,
            summarize_cost_ceiling_usd=settings.summarize_cost_ceiling_usd,
        )
        self.dispatcher = ToolDispatcher(
            build_tools(self.tool_context),
            self.session_manager,
            server_name=settings.mcp_server_name,
            server_version=settings.app_version,
        )

    @classmethod
    def from_settings(cls, settings: Settings, summarizer: Optional[Summarizer] = None) -> "ServiceContainer":
        """Build a container backed by the SQL reference stores."""
        from gateway.db.database import build_engine, build_session_factory, init_db
        from gateway.db.stores import SqlAuditSink, SqlEntryStore, SqlKeyStore

        engine = build_engine(settings.database_url, echo=settings.debug)
        init_db(engine)
        session_factory = build_session_factory(engine)
        return cls(
            settings,
            key_store=SqlKeyStore(session_factory),
            entry_store=SqlEntryStore(session_factory),
            audit_sink=SqlAuditSink(session_factory),
            summarizer=summarizer,
        )
