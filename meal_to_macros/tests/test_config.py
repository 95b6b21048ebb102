import json

import pytest

from meal_to_macros.config import REQUIRED_KEYS, Config, Settings, Vocabulary

SECRETS = {
    "FATSECRET_CLIENT_ID": "id",
    "FATSECRET_CLIENT_SECRET": " secret ",
    "OPENAI_API_KEY": "sk-test",
}


def test_load_from_env():
    cfg = Config.load_from_env(SECRETS)
    assert cfg.fatsecret_client_secret == "secret"
    assert cfg.openai_model == "gpt-4.1-mini"
    assert Config.load_from_env({**SECRETS, "OPENAI_MODEL": "gpt-4o"}).openai_model == "gpt-4o"


@pytest.mark.parametrize("key", REQUIRED_KEYS)
def test_missing_secret(key):
    env = {k: v for k, v in SECRETS.items() if k != key}
    with pytest.raises(RuntimeError, match=key):
        Config.load_from_env(env)


def test_placeholder_secret():
    with pytest.raises(RuntimeError, match="placeholder"):
        Config.load_from_env({**SECRETS, "OPENAI_API_KEY": "CHANGEME"})


def test_settings_defaults():
    s = Settings.from_env({})
    assert s.min_db_token_score == 0.35
    assert s.min_db_ai_pick_conf == 0.60
    assert s.pack_tolerance == 0.20
    assert s.shortlist_size == 6
    assert s.cache_namespace == "hybrid-v3"


def test_settings_env_overrides():
    s = Settings.from_env(
        {
            "M2M_MIN_DB_TOKEN_SCORE": "0.5",
            "M2M_SHORTLIST_SIZE": "4",
            "M2M_SINGLE_PACK_RANGE_G": "10,300",
            "M2M_CACHE_NAMESPACE": "v4",
            "M2M_PACK_TOLERANCE": "",
        }
    )
    assert s.min_db_token_score == 0.5
    assert s.shortlist_size == 4
    assert s.single_pack_range_g == (10.0, 300.0)
    assert s.cache_namespace == "v4"
    assert s.pack_tolerance == 0.20


def test_settings_bad_override():
    with pytest.raises(RuntimeError, match="M2M_SHORTLIST_SIZE"):
        Settings.from_env({"M2M_SHORTLIST_SIZE": "six"})


def test_vocabulary_from_json_extends_defaults(tmp_path):
    path = tmp_path / "vocab.json"
    path.write_text(json.dumps({"brands": ["Leon", "Itsu"], "variants": ["Keto"]}))
    vocab = Vocabulary.from_json(path)
    assert "leon" in vocab.brands
    assert "starbucks" in vocab.brands
    assert "keto" in vocab.variants
    assert vocab.dishes == Vocabulary().dishes


def test_vocabulary_unknown_key(tmp_path):
    path = tmp_path / "vocab.json"
    path.write_text(json.dumps({"cuisines": ["thai"]}))
    with pytest.raises(RuntimeError, match="cuisines"):
        Vocabulary.from_json(path)
