from onboarding import load_env, parse_env


def test_parse_env_handles_export_quotes_and_comments():
    text = "\n".join(
        [
            "# proxy settings",
            "export GEMINI_PROXY_URL=https://proxy.example/api",
            "IMAGE_DELAY_BETWEEN_MS=500 # faster locally",
            'GREETING="hola # amigos"',
            "EMPTY=",
            "not a pair",
            "=orphan",
        ]
    )
    assert parse_env(text) == {
        "GEMINI_PROXY_URL": "https://proxy.example/api",
        "IMAGE_DELAY_BETWEEN_MS": "500",
        "GREETING": "hola # amigos",
        "EMPTY": "",
    }


def test_load_env_keeps_existing_values(tmp_path):
    env_file = tmp_path / "local.env"
    env_file.write_text("REDIS_URL=redis://file\nPROGRESS_STORE=redis\n", encoding="utf-8")
    environ = {"REDIS_URL": "redis://real", "ONBOARDING_ENV_FILE": str(env_file)}

    applied = load_env(environ=environ)

    assert applied == {"PROGRESS_STORE": "redis"}
    assert environ["REDIS_URL"] == "redis://real"
    assert environ["PROGRESS_STORE"] == "redis"


def test_load_env_missing_file_is_a_no_op(tmp_path):
    environ = {}
    assert load_env(tmp_path / "absent.env", environ) == {}
    assert environ == {}
