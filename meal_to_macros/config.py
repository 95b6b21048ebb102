from __future__ import annotations

import os
import json
from dataclasses import dataclass, fields, replace
from pathlib import Path

import requests


REQUIRED_KEYS = [
    "FATSECRET_CLIENT_ID",
    "FATSECRET_CLIENT_SECRET",
    "OPENAI_API_KEY",
]

DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"

# Infisical connection (read from env vars set in compose)
INFISICAL_URL = os.environ.get("INFISICAL_URL", "http://localhost:8089")
INFISICAL_CLIENT_ID = os.environ.get("INFISICAL_CLIENT_ID", "")
INFISICAL_CLIENT_SECRET = os.environ.get("INFISICAL_CLIENT_SECRET", "")
INFISICAL_PROJECT_ID = os.environ.get("INFISICAL_PROJECT_ID", "")

_PLACEHOLDERS = {"PLACEHOLDER", "MASKED", "CHANGEME", ""}


@dataclass(frozen=True)
class Config:
    fatsecret_client_id: str
    fatsecret_client_secret: str
    openai_api_key: str
    openai_model: str = DEFAULT_OPENAI_MODEL

    @staticmethod
    def load_from_env(environ: dict[str, str] | None = None) -> "Config":
        env = os.environ if environ is None else environ
        return Config._from_values(env, origin="environment")

    @staticmethod
    def load_from_infisical(*, env: str = "dev") -> "Config":
        token = _infisical_login()
        secrets = _infisical_list_secrets(token, env=env)
        return Config._from_values(secrets, origin="Infisical")

    @staticmethod
    def _from_values(values, *, origin: str) -> "Config":
        for k in REQUIRED_KEYS:
            if k not in values:
                raise RuntimeError(f"Missing {origin} secret: {k}")
            if (values[k] or "").strip() in _PLACEHOLDERS:
                raise RuntimeError(f"{origin} secret {k} is still a placeholder")

        return Config(
            fatsecret_client_id=values["FATSECRET_CLIENT_ID"].strip(),
            fatsecret_client_secret=values["FATSECRET_CLIENT_SECRET"].strip(),
            openai_api_key=values["OPENAI_API_KEY"].strip(),
            openai_model=(values.get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL).strip(),
        )


def _infisical_login() -> str:
    """Get an access token via Universal Auth."""
    resp = requests.post(
        f"{INFISICAL_URL}/api/v1/auth/universal-auth/login",
        json={"clientId": INFISICAL_CLIENT_ID, "clientSecret": INFISICAL_CLIENT_SECRET},
        timeout=15,
    )
    resp.raise_for_status()
    return resp.json()["accessToken"]


def _infisical_list_secrets(token: str, *, env: str = "dev") -> dict[str, str]:
    resp = requests.get(
        f"{INFISICAL_URL}/api/v4/secrets",
        params={"projectId": INFISICAL_PROJECT_ID, "environment": env, "secretPath": "/"},
        headers={"Authorization": f"Bearer {token}"},
        timeout=15,
    )
    resp.raise_for_status()
    return {s["secretKey"]: s["secretValue"] for s in resp.json().get("secrets", [])}


# ---------------------------
# Resolution thresholds
# ---------------------------

@dataclass(frozen=True)
class Settings:
    # Token overlap a catalog candidate needs before it is considered at all.
    min_db_token_score: float = 0.35
    # AI pick confidence below this loses to a confident generative baseline.
    min_db_ai_pick_conf: float = 0.60
    # Baseline confidence below this counts as "low".
    low_baseline_confidence: float = 0.65

    # Max relative difference between requested grams and a pack size.
    pack_tolerance: float = 0.20
    # Requested grams that plausibly mean "one pack" when no pack size is known.
    single_pack_range_g: tuple[float, float] = (15.0, 250.0)

    shortlist_size: int = 6
    max_results: int = 10

    cache_ttl_s: float = 86400.0
    cache_namespace: str = "hybrid-v3"

    default_weight_confidence: float = 0.75
    default_serving_confidence: float = 0.65

    http_timeout_s: float = 15.0
    llm_timeout_s: float = 30.0

    @staticmethod
    def from_env(environ: dict[str, str] | None = None) -> "Settings":
        """Build settings, overriding any field from an `M2M_<FIELD>` variable."""
        env = os.environ if environ is None else environ
        base = Settings()
        overrides: dict[str, object] = {}
        for f in fields(Settings):
            raw = env.get(f"M2M_{f.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            current = getattr(base, f.name)
            try:
                if isinstance(current, tuple):
                    lo, hi = (float(p) for p in raw.split(","))
                    overrides[f.name] = (lo, hi)
                elif isinstance(current, int):
                    overrides[f.name] = int(raw)
                elif isinstance(current, float):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw.strip()
            except ValueError as e:
                raise RuntimeError(f"Invalid value for M2M_{f.name.upper()}: {raw!r}") from e
        return replace(base, **overrides)


# ---------------------------
# Matching vocabulary
# ---------------------------

@dataclass(frozen=True)
class Vocabulary:
    """Word lists used by the gates and the query cleaner.

    All entries are written in normalized form: lower case, no apostrophes,
    words separated by single spaces.
    """

    brands: tuple[str, ...] = (
        "mcdonalds", "burger king", "kfc", "subway", "nandos", "greggs",
        "starbucks", "costa", "pret", "caffe nero", "dominos", "pizza hut",
        "tesco", "sainsburys", "asda", "aldi", "lidl", "waitrose",
        "cadbury", "mcvities", "walkers", "heinz", "kelloggs", "coca cola",
        "pepsi", "nestle", "muller", "warburtons", "hovis", "marks and spencer",
    )
    dishes: tuple[str, ...] = (
        "sausage roll", "chicken tikka masala", "fish and chips",
        "jacket potato", "spaghetti bolognese", "cottage pie", "shepherds pie",
        "chilli con carne", "full english", "steak bake", "chicken korma",
        "lasagne", "cheese toastie", "bacon sandwich",
    )
    size_words: tuple[str, ...] = (
        "small", "medium", "large", "regular", "tall", "grande", "venti",
        "extra large", "standard",
    )
    drinks: tuple[str, ...] = (
        "latte", "cappuccino", "flat white", "americano", "mocha", "macchiato",
        "espresso", "coffee", "tea", "hot chocolate", "frappuccino", "chai",
    )
    at_home_forms: tuple[str, ...] = (
        "capsule", "capsules", "pod", "pods", "instant", "sachet", "sachets",
        "granules", "powder",
    )
    variants: tuple[str, ...] = (
        "diet", "zero", "light", "lite", "low fat", "reduced fat", "baked",
        "sugar free", "no added sugar", "skinny", "fat free",
    )
    pack_words: tuple[str, ...] = (
        "pack", "packet", "bag", "bar", "multipack", "pot", "tub", "can",
        "bottle", "carton", "box",
    )

    @staticmethod
    def from_json(path: str | Path) -> "Vocabulary":
        """Load a JSON object of list fields; its entries extend the defaults."""
        data = json.loads(Path(path).read_text())
        if not isinstance(data, dict):
            raise RuntimeError(f"Vocabulary file {path} must contain a JSON object")
        known = {f.name for f in fields(Vocabulary)}
        unknown = set(data) - known
        if unknown:
            raise RuntimeError(f"Unknown vocabulary keys in {path}: {sorted(unknown)}")
        # Imported here to avoid a cycle: normalize imports Vocabulary.
        from .normalize import normalize_text

        base = Vocabulary()
        merged: dict[str, tuple[str, ...]] = {}
        for k, vals in data.items():
            extra = [normalize_text(str(v)) for v in vals if str(v).strip()]
            merged[k] = tuple(dict.fromkeys([*getattr(base, k), *extra]))
        return replace(base, **merged)


DEFAULT_SETTINGS = Settings()
DEFAULT_VOCABULARY = Vocabulary()
