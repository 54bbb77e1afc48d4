import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseModel):
    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    default_project_key: str = "ATOMICWORKPOC"
    port: int = 8080
    mcp_port: int = 8001
    request_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        # .env lives at the repo root; fall back to its parent
        if env_path is None:
            env_path = ROOT_DIR / ".env"
            if not env_path.exists():
                env_path = ROOT_DIR.parent / ".env"
        load_dotenv(dotenv_path=env_path, override=True)

        return cls(
            jira_base_url=os.getenv("JIRA_BASE_URL"),
            jira_email=os.getenv("JIRA_EMAIL"),
            jira_api_token=os.getenv("JIRA_API_TOKEN"),
            default_project_key=os.getenv("DEFAULT_PROJECT_KEY") or "ATOMICWORKPOC",
            port=int(os.getenv("PORT", "8080")),
            mcp_port=int(os.getenv("MCP_PORT", "8001")),
            request_timeout=float(os.getenv("JIRA_TIMEOUT", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def require_credentials(self) -> None:
        missing = [
            name
            for name, value in (
                ("JIRA_BASE_URL", self.jira_base_url),
                ("JIRA_EMAIL", self.jira_email),
                ("JIRA_API_TOKEN", self.jira_api_token),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"❌ Missing required environment variables: {', '.join(missing)}")
