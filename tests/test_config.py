from branchkeeper.config import (
    DEFAULT_API_URL,
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_HTTP_TIMEOUT,
    load_config,
)


def _write_toml(repo, body: str) -> None:
    (repo / "configs").mkdir()
    (repo / "configs" / "branchkeeper.toml").write_text(body)


def test_defaults_without_file_or_env(tmp_path):
    config = load_config(tmp_path, env={})
    assert config.branch_prefix == DEFAULT_BRANCH_PREFIX
    assert config.api_url == DEFAULT_API_URL
    assert config.token_source == "env"
    assert config.http_timeout == DEFAULT_HTTP_TIMEOUT


def test_toml_overrides_defaults(tmp_path):
    _write_toml(
        tmp_path,
        '[branchkeeper]\nbranch_prefix = "bot/"\ntoken_source = "oidc"\nhttp_timeout = 5\n',
    )
    config = load_config(tmp_path, env={})
    assert config.branch_prefix == "bot/"
    assert config.token_source == "oidc"
    assert config.http_timeout == 5.0


def test_env_overrides_toml(tmp_path):
    _write_toml(tmp_path, '[branchkeeper]\nbranch_prefix = "bot/"\n')
    config = load_config(
        tmp_path,
        env={"BRANCH_PREFIX": "agent-", "GITHUB_API_URL": "https://ghe.example.com/api/v3/"},
    )
    assert config.branch_prefix == "agent-"
    assert config.api_url == "https://ghe.example.com/api/v3"


def test_empty_branch_prefix_is_honoured(tmp_path):
    assert load_config(tmp_path, env={"BRANCH_PREFIX": ""}).branch_prefix == ""


def test_empty_env_values_do_not_clear_settings(tmp_path):
    assert load_config(tmp_path, env={"GITHUB_SERVER_URL": ""}).server_url == "https://github.com"


def test_malformed_toml_falls_back_to_defaults(tmp_path):
    _write_toml(tmp_path, "[branchkeeper\nbranch_prefix = ")
    assert load_config(tmp_path, env={}).branch_prefix == DEFAULT_BRANCH_PREFIX


def test_bad_timeout_env_is_ignored(tmp_path):
    assert load_config(tmp_path, env={"BRANCHKEEPER_HTTP_TIMEOUT": "soon"}).http_timeout == DEFAULT_HTTP_TIMEOUT
