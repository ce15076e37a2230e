from dbcomply.cli.tui import _MAX_ENV_NAME_WIDTH, _env_choice_title, _truncate
from dbcomply.core.environments import Environment


def _env(env_id, name):
    return Environment(id=env_id, display_name=name, base_url=f"https://{env_id}")


def test_env_choice_title_shows_name_before_id_and_aligns_id_column():
    first = _env_choice_title(_env("prod", "Production"), name_width=12)
    second = _env_choice_title(_env("dev", "Dev"), name_width=12)

    assert first.startswith("Production")
    assert second.startswith("Dev")
    assert first.index("(id: ") == second.index("(id: ")


def test_env_choice_title_truncates_long_names():
    long_name = "x" * (_MAX_ENV_NAME_WIDTH + 10)
    rendered = _env_choice_title(_env("prod", long_name), name_width=_MAX_ENV_NAME_WIDTH)

    assert "..." in rendered
    assert "(id: prod)" in rendered
    assert _truncate(long_name, _MAX_ENV_NAME_WIDTH).endswith("...")
