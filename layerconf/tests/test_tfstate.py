"""Tests for the Terraform state lookup function."""

import json

import pytest

from layerconf import DecodeError, Loader, SourceReadError, TemplateExecutionError
from layerconf.sources import tfstate

STATE = {
    "version": 4,
    "resources": [
        {
            "mode": "data",
            "type": "aws_caller_identity",
            "name": "current",
            "instances": [{"attributes": {"account_id": "123456789012"}}],
        },
        {
            "mode": "managed",
            "type": "aws_cloudwatch_log_group",
            "name": "main",
            "instances": [
                {
                    "attributes": {
                        "name": "/main/app",
                        "retention_in_days": 30,
                        "tags": {"env": "prod"},
                    }
                }
            ],
        },
        {
            "module": "module.logs",
            "mode": "managed",
            "type": "aws_s3_bucket",
            "name": "this",
            "instances": [{"index_key": "app", "attributes": {"bucket": "app-logs"}}],
        },
        {
            "mode": "managed",
            "type": "aws_subnet",
            "name": "private",
            "instances": [
                {"index_key": 0, "attributes": {"id": "subnet-0", "cidrs": ["10.0.0.0/24"]}},
                {"index_key": 1, "attributes": {"id": "subnet-1", "cidrs": []}},
            ],
        },
    ],
    "outputs": {"vpc_id": {"value": "vpc-1"}},
}


@pytest.fixture()
def state_path(tmp_path):
    path = tmp_path / "terraform.tfstate"
    path.write_text(json.dumps(STATE), encoding="utf-8")
    return path


class TestParseAddress:
    """Test cases for parse_address()."""

    def test_resource_with_index(self):
        assert tfstate.parse_address('aws_s3_bucket.this["app"].bucket') == [
            ("name", "aws_s3_bucket"),
            ("name", "this"),
            ("index", "app"),
            ("name", "bucket"),
        ]

    @pytest.mark.parametrize("address", ["", ".foo", "foo.", "foo..bar", "[0]", "a b"])
    def test_invalid(self, address):
        with pytest.raises(tfstate.AddressError):
            tfstate.parse_address(address)


class TestStateLookup:
    """Test cases for State.lookup()."""

    def setup_method(self):
        """Set up test fixtures."""
        self.state = tfstate.State(STATE)

    @pytest.mark.parametrize(
        "address,expected",
        [
            ("data.aws_caller_identity.current.account_id", "123456789012"),
            ("aws_cloudwatch_log_group.main.name", "/main/app"),
            ("aws_cloudwatch_log_group.main.retention_in_days", 30),
            ('module.logs.aws_s3_bucket.this["app"].bucket', "app-logs"),
            ("aws_subnet.private[1].id", "subnet-1"),
            ("aws_subnet.private[0].cidrs[0]", "10.0.0.0/24"),
            ("output.vpc_id", "vpc-1"),
        ],
    )
    def test_lookup(self, address, expected):
        assert self.state.lookup(address) == expected

    @pytest.mark.parametrize(
        "address",
        [
            "aws_cloudwatch_log_group.other.name",
            "aws_cloudwatch_log_group.main.missing",
            "aws_subnet.private[2].id",
            "aws_subnet.private[1].cidrs[0]",
            "output.nothing",
            "aws_s3_bucket.this['app'].bucket",
        ],
    )
    def test_not_found(self, address):
        with pytest.raises(tfstate.StateLookupError):
            self.state.lookup(address.replace("'", '"'))


class TestTemplateFunction:
    """Test cases for the tfstate template function."""

    def test_load_and_render(self, state_path):
        loader = Loader()
        loader.funcs(tfstate.load(f"file://{state_path}"))

        conf = {}
        loader.load_with_env_bytes(
            conf,
            """
aws_account_id: '{{ tfstate("data.aws_caller_identity.current.account_id") }}'
log_group: {{ tfstate("aws_cloudwatch_log_group.main.name") }}
bucket: {{ tfstate("module.logs.aws_s3_bucket.this['app'].bucket") }}
retention: '{{ tfstate("aws_cloudwatch_log_group.main.retention_in_days") }}'
tags: '{{ tfstate("aws_cloudwatch_log_group.main.tags") }}'
""",
        )

        assert conf == {
            "aws_account_id": "123456789012",
            "log_group": "/main/app",
            "bucket": "app-logs",
            "retention": "30",
            "tags": '{"env":"prod"}',
        }

    def test_missing_address_fails_expansion(self, state_path):
        loader = Loader()
        loader.funcs(tfstate.load(str(state_path)))
        with pytest.raises(TemplateExecutionError, match="not found in tfstate"):
            loader.load_with_env_bytes({}, "x: '{{ tfstate(\"aws_vpc.none.id\") }}'")

    def test_missing_ok(self, state_path):
        loader = Loader()
        loader.funcs(tfstate.load(str(state_path), missing_ok=True))
        conf = {}
        loader.load_with_env_bytes(conf, "x: '{{ tfstate(\"aws_vpc.none.id\") }}'")
        assert conf == {"x": ""}

    def test_unreadable_state(self, tmp_path):
        with pytest.raises(SourceReadError):
            tfstate.load(str(tmp_path / "missing.tfstate"))

    def test_invalid_state(self, tmp_path):
        path = tmp_path / "broken.tfstate"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(DecodeError):
            tfstate.load(str(path))

    def test_unsupported_scheme(self):
        with pytest.raises(SourceReadError, match="unsupported scheme"):
            tfstate.load("s3://bucket/terraform.tfstate")
