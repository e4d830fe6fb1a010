from dataclasses import dataclass


@dataclass
class AppConfig:
    name: str
    secret_key: str
    base_currency: str
    frontend_url: str


@dataclass
class EmailConfig:
    enabled: bool
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    sender: str


@dataclass
class LedgerConfig:
    """Credit and invitation policy knobs."""

    initial_vacancy_credits: int
    initial_bonus_credits: int
    initial_bonus_plan: str
    invitation_ttl_days: int
