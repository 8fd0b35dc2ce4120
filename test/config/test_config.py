import logging
import textwrap

import pydantic
import pytest

from registry_retention.config import RetentionConfig, RetentionConfigDocument, RetentionSettings
from registry_retention.const import RegistryTypeEnum
from registry_retention.error import RetentionConfigNotFoundError, RetentionFileError
from registry_retention.registry_management.distribution import DistributionClient
from registry_retention.registry_management.dockerhub import DockerhubClient
from registry_retention.retention.models import Decision
from registry_retention.retention.policy import TagRule
from test.helpers import CONST_DATETIME_NOW, FakeRegistryClient, days_ago

pytestmark = [
    pytest.mark.unit,
    pytest.mark.config,
]

RETENTION_YAML = textwrap.dedent(
    """\
    registry:
      url: registry.example.com
      timeout: 10
    dry_run: true
    keep_days: 60
    keep_count: 2
    rules:
      - repo_regex: "^library$"
        tags_regex: "^v[0-9]+$"
        tags_keep_days: 10
        tags_keep_count: 1
      - repo_regex: "^team/"
        tag_rules:
          - tag_regex: "^release-"
            keep_days: 365
            keep_count: 10
          - tag_regex: ".*"
            keep_days: 7
            keep_count: 1
    """
)


class TestRetentionConfigDocument:
    def test_defaults(self):
        """Test an empty document applies the default thresholds to every repository"""
        document = RetentionConfigDocument()
        assert document.registry is None
        assert document.dry_run is False
        assert document.keep_days == 90
        assert document.keep_count == 5
        assert document.rules == ()

    def test_unknown_field(self):
        """Test unknown top-level fields are rejected"""
        with pytest.raises(pydantic.ValidationError):
            RetentionConfigDocument(keep_weeks=3)

    def test_duplicate_patterns_warn(self, caplog):
        """Test a repository rule shadowed by an identical earlier pattern is logged"""
        with caplog.at_level(logging.WARNING):
            RetentionConfigDocument(
                rules=[
                    {"repo_regex": "^team/", "tag_rules": [{"keep_days": 1}]},
                    {"repo_regex": "^team/", "tag_rules": [{"keep_days": 2}]},
                ]
            )
        assert "Repository rule #2" in caplog.text


class TestRetentionConfig:
    def test_load(self, retention_yaml):
        """Test loading a retention.yaml file with both rule forms"""
        config = RetentionConfig(retention_yaml(RETENTION_YAML))

        assert config.dry_run is True
        assert config.keep_days == 60
        assert config.keep_count == 2
        assert config.registry.url == "registry.example.com"
        assert config.registry.timeout == 10
        assert len(config.model.rules) == 2
        assert config.model.rules[0].tag_rules == (TagRule(tag_regex="^v[0-9]+$", keep_days=10, keep_count=1),)
        assert len(config.model.rules[1].tag_rules) == 2

    def test_policy_set(self, retention_yaml):
        """Test the policy set ends with the catch-all rule using the document defaults"""
        policy_set = RetentionConfig(retention_yaml(RETENTION_YAML)).policy_set
        assert len(policy_set.rules) == 3
        assert policy_set.rules[-1].tag_rules == (TagRule(tag_regex=".*", keep_days=60, keep_count=2),)

    def test_settings_override(self, retention_yaml):
        """Test settings override the document values"""
        settings = RetentionSettings(
            registry_url="localhost:5000",
            registry_type=RegistryTypeEnum.DISTRIBUTION,
            dry_run=False,
            keep_days=5,
            keep_count=0,
        )
        config = RetentionConfig(retention_yaml(RETENTION_YAML), settings)

        assert config.dry_run is False
        assert config.keep_days == 5
        assert config.keep_count == 0
        assert config.registry.url == "localhost:5000"
        assert config.registry.timeout == 10
        assert config.policy_set.rules[-1].tag_rules[0].keep_days == 5

    def test_empty_file(self, retention_yaml):
        """Test an empty file is an empty document"""
        config = RetentionConfig(retention_yaml(""))
        assert config.model == RetentionConfigDocument()

    def test_without_file(self):
        """Test a configuration can be built from settings alone"""
        config = RetentionConfig(settings=RetentionSettings(registry_url="localhost:5000"))
        assert config.config_file is None
        assert config.registry.base_url == "https://localhost:5000"
        assert len(config.policy_set.rules) == 1

    def test_no_registry(self, retention_yaml):
        """Test a missing registry URL raises ValueError"""
        config = RetentionConfig(retention_yaml("keep_days: 5\n"))
        with pytest.raises(ValueError, match="No registry configured"):
            _ = config.registry

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            RetentionConfig(tmp_path / "retention.yaml")

    def test_invalid_yaml(self, retention_yaml):
        """Test a malformed YAML file raises RetentionFileError"""
        with pytest.raises(RetentionFileError, match="Failed to parse YAML"):
            RetentionConfig(retention_yaml("rules: [\n  - repo_regex: ^a\n"))

    def test_invalid_document(self, retention_yaml):
        """Test an invalid document raises a ValidationError"""
        with pytest.raises(pydantic.ValidationError):
            RetentionConfig(retention_yaml("keep_count: -1\n"))

    def test_from_context_directory(self, tmp_path, retention_yaml):
        """Test the config file is found in a context directory"""
        retention_yaml(RETENTION_YAML, filename="retention.yml")
        config = RetentionConfig.from_context(tmp_path)
        assert config.config_file == (tmp_path / "retention.yml").resolve()

    def test_from_context_file(self, retention_yaml):
        """Test the context can point to the config file itself"""
        path = retention_yaml(RETENTION_YAML, filename="custom.yaml")
        assert RetentionConfig.from_context(path).config_file == path.resolve()

    def test_from_context_not_found(self, tmp_path):
        """Test a context without config file raises RetentionConfigNotFoundError"""
        with pytest.raises(RetentionConfigNotFoundError) as exc_info:
            RetentionConfig.from_context(tmp_path)
        assert len(exc_info.value.filepath) == 2

    def test_create_distribution_client(self, retention_yaml, monkeypatch):
        """Test a distribution client is created for the configured registry"""
        monkeypatch.delenv("REGISTRY_USERNAME", raising=False)
        client = RetentionConfig(retention_yaml(RETENTION_YAML)).create_client()
        assert isinstance(client, DistributionClient)
        assert client.base_url == "https://registry.example.com"
        assert client.timeout == 10

    def test_create_dockerhub_client(self, mocker):
        """Test a Docker Hub client is created for the namespace of the registry URL"""
        mock_requests = mocker.patch("registry_retention.registry_management.dockerhub.api.requests")
        mock_requests.post.return_value.json.return_value = {"access_token": "token"}
        settings = RetentionSettings(registry_url="docker.io/posit", registry_type=RegistryTypeEnum.DOCKERHUB)
        mocker.patch.dict("os.environ", {"DOCKERHUB_USERNAME": "user", "DOCKERHUB_PASSWORD": "secret"})

        client = RetentionConfig(settings=settings).create_client()

        assert isinstance(client, DockerhubClient)
        assert client.namespace == "posit"

    def test_create_dockerhub_client_without_namespace(self):
        """Test a Docker Hub registry URL needs a namespace"""
        settings = RetentionSettings(registry_url="docker.io", registry_type=RegistryTypeEnum.DOCKERHUB)
        with pytest.raises(ValueError, match="namespace"):
            RetentionConfig(settings=settings).create_client()

    def test_purge(self, retention_yaml):
        """Test a purge run applies the configured rules and honors the configured dry-run flag"""
        client = FakeRegistryClient(
            {
                "library": {"v1": days_ago(30), "v2": days_ago(20), "latest": days_ago(1)},
                "team/app": {"release-1": days_ago(400), "feature": days_ago(30), "hotfix": days_ago(2)},
                "other": {"a": days_ago(100), "b": days_ago(70), "c": days_ago(61)},
            }
        )
        report = RetentionConfig(retention_yaml(RETENTION_YAML)).purge(client)

        assert report.dry_run is True
        assert report.now == CONST_DATETIME_NOW
        assert client.deleted == []
        # "library" and "other" belong to the default namespace and are listed first.
        library, other, team = report.repositories
        assert library.decision == Decision(keep=("v2",), purge=("v1",))
        assert library.skipped_tags == ["latest"]
        assert team.decision == Decision(keep=("release-1", "hotfix"), purge=("feature",))
        assert other.decision == Decision(keep=("c", "b"), purge=("a",))

    def test_purge_closes_created_client(self, retention_yaml, mocker):
        """Test a purge run creating its own client closes it afterwards"""
        client = FakeRegistryClient({"library": {"v1": days_ago(30)}})
        mocker.patch.object(RetentionConfig, "create_client", return_value=client)
        report = RetentionConfig(retention_yaml(RETENTION_YAML)).purge()

        assert [r.repository for r in report.repositories] == ["library"]
        assert client.closed is True

    def test_purge_leaves_given_client_open(self, retention_yaml):
        """Test a purge run does not close a client passed by the caller"""
        client = FakeRegistryClient({"library": {"v1": days_ago(30)}})
        RetentionConfig(retention_yaml(RETENTION_YAML)).purge(client)
        assert client.closed is False
