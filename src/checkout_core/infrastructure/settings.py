"""Process-wide settings, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Default data directory: <repo>/data when installed in editable mode.
_DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class CheckoutSettings:

    data_dir: Path = _DEFAULT_DATA_DIR
    email_debounce_seconds: float = 0.5
    quote_timeout: float = 12.0
    tokenize_timeout: float = 12.0
    submit_timeout: float = 30.0
    viacep_url: str = "https://viacep.com.br"
    melhor_envio_url: str = "https://sandbox.melhorenvio.com.br"
    melhor_envio_token: str = ""
    origin_postal_code: str = ""
    mercadopago_url: str = "https://api.mercadopago.com"
    mercadopago_public_key: str = ""

    @staticmethod
    def from_env() -> CheckoutSettings:
        data_dir = os.getenv("CHECKOUT_DATA_DIR")
        return CheckoutSettings(
            data_dir=Path(data_dir) if data_dir else _DEFAULT_DATA_DIR,
            email_debounce_seconds=_float_env("CHECKOUT_EMAIL_DEBOUNCE_MS", 500.0) / 1000,
            quote_timeout=_float_env("CHECKOUT_QUOTE_TIMEOUT", 12.0),
            tokenize_timeout=_float_env("CHECKOUT_TOKENIZE_TIMEOUT", 12.0),
            submit_timeout=_float_env("CHECKOUT_SUBMIT_TIMEOUT", 30.0),
            viacep_url=os.getenv("VIACEP_URL", "https://viacep.com.br"),
            melhor_envio_url=os.getenv("MELHOR_ENVIO_URL", "https://sandbox.melhorenvio.com.br"),
            melhor_envio_token=os.getenv("MELHOR_ENVIO_TOKEN", ""),
            origin_postal_code=os.getenv("CHECKOUT_ORIGIN_POSTAL_CODE", ""),
            mercadopago_url=os.getenv("MERCADOPAGO_URL", "https://api.mercadopago.com"),
            mercadopago_public_key=os.getenv("MERCADOPAGO_PUBLIC_KEY", ""),
        )
