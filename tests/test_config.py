"""
Configuration and Route Tests
=============================

Run with: pytest tests/ -v
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from web3 import Web3

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Config, ConfigManager, DEFAULT_CONFIG, split_list
from routes import Route, parse_route, parse_routes
from utils import ConfigurationError


KEY_1 = "0x" + "a" * 64
KEY_2 = "0x" + "b" * 64
ROUTER = "0x2222222222222222222222222222222222222222"
TOKEN_A = "0x" + "a" * 40
TOKEN_B = "0x" + "b" * 40
TOKEN_A_CHECKSUM = Web3.to_checksum_address(TOKEN_A)
TOKEN_B_CHECKSUM = Web3.to_checksum_address(TOKEN_B)


def valid_config(**overrides) -> Config:
    data = {
        "rpc_url": "https://rpc.example.org",
        "private_keys": [KEY_1],
        "router_address": ROUTER,
        "routes": [f"{TOKEN_A}>{TOKEN_B}"],
    }
    data.update(overrides)
    return Config.from_dict(data)


class TestConfig:
    """Tests for the Config value."""

    def test_default_config(self):
        config = Config()

        assert config.amount == "0.003"
        assert config.swap_count == 2
        assert config.delay_ms == 3000
        assert config.swap_gas_limit == 300000
        assert config.deadline_seconds == 1800

    def test_from_dict_splits_lists(self):
        config = Config.from_dict({
            "private_keys": f"{KEY_1}, {KEY_2}",
            "routes": f"{TOKEN_A}>{TOKEN_B},{TOKEN_B}>{TOKEN_A}",
            "amount": 0.5,
        })

        assert config.private_keys == [KEY_1, KEY_2]
        assert len(config.routes) == 2
        assert config.amount == "0.5"

    def test_from_dict_ignores_invalid_fields(self):
        config = Config.from_dict({"swap_count": 4, "invalid_field": "ignored"})

        assert config.swap_count == 4
        assert not hasattr(config, "invalid_field")

    def test_to_dict_hides_keys(self):
        data = valid_config(private_keys=[KEY_1, KEY_2]).to_dict()

        assert KEY_1 not in str(data)
        assert data["private_keys"] == ["<2 keys>"]

    def test_validate_checksums_router(self):
        config = valid_config(router_address="0x" + "c" * 40).validate()

        assert config.router_address == Web3.to_checksum_address("0x" + "c" * 40)

    @pytest.mark.parametrize("overrides,message", [
        ({"rpc_url": ""}, "RPC_URL"),
        ({"private_keys": []}, "PRIVATE_KEYS"),
        ({"router_address": ""}, "ROUTER_ADDRESS"),
        ({"routes": []}, "ROUTES"),
        ({"router_address": "0x1234"}, "router address"),
        ({"amount": "abc"}, "amount"),
        ({"amount": "0"}, "positive"),
        ({"amount": "1e999999999"}, "too large"),
        ({"swap_count": 0}, "Swap count"),
        ({"delay_ms": -1}, "Delay"),
        ({"swap_gas_limit": 0}, "swap_gas_limit"),
    ])
    def test_validate_errors(self, overrides, message):
        with pytest.raises(ConfigurationError, match=message):
            valid_config(**overrides).validate()

    def test_split_list(self):
        assert split_list(None) == []
        assert split_list(" a , ,b ") == ["a", "b"]
        assert split_list(["a ", "b"]) == ["a", "b"]
        with pytest.raises(ConfigurationError):
            split_list(42)


class TestConfigManager:
    """Tests for ConfigManager source precedence."""

    @patch("config.load_dotenv")
    def test_load_from_yaml(self, mock_dotenv, tmp_path):
        config_path = tmp_path / "bot.yaml"
        config_path.write_text(yaml.dump({
            "rpc_url": "https://rpc.example.org",
            "private_keys": [KEY_1],
            "router_address": ROUTER,
            "routes": [f"{TOKEN_A}>{TOKEN_B}"],
            "swap_count": 5,
        }))

        with patch.dict(os.environ, {}, clear=True):
            config = ConfigManager(config_path).load()

        assert config.swap_count == 5
        assert config.private_keys == [KEY_1]

    @patch("config.load_dotenv")
    def test_environment_overrides_yaml(self, mock_dotenv, tmp_path):
        config_path = tmp_path / "bot.yaml"
        config_path.write_text(yaml.dump({
            "rpc_url": "https://yaml.example.org",
            "private_keys": [KEY_1],
            "router_address": ROUTER,
            "routes": [f"{TOKEN_A}>{TOKEN_B}"],
        }))
        env = {"RPC_URL": "https://env.example.org", "PRIVATE_KEYS": f"{KEY_1},{KEY_2}"}

        with patch.dict(os.environ, env, clear=True):
            config = ConfigManager(config_path).load()

        assert config.rpc_url == "https://env.example.org"
        assert config.private_keys == [KEY_1, KEY_2]

    @patch("config.load_dotenv")
    def test_overrides_win(self, mock_dotenv):
        env = {
            "RPC_URL": "https://rpc.example.org",
            "PRIVATE_KEYS": KEY_1,
            "ROUTER_ADDRESS": ROUTER,
            "ROUTES": f"{TOKEN_A}>{TOKEN_B}",
        }

        with patch.dict(os.environ, env, clear=True):
            config = ConfigManager().load({"amount": "1.5", "swap_count": None})

        assert config.amount == "1.5"
        assert config.swap_count == 2

    def test_load_from_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "RPC_URL=https://rpc.example.org\n"
            f"PRIVATE_KEYS={KEY_1}\n"
            f"ROUTER_ADDRESS={ROUTER}\n"
            f"ROUTES={TOKEN_A}>{TOKEN_B}\n"
        )

        with patch.dict(os.environ, {}, clear=True):
            config = ConfigManager(env_file=env_file).load()

        assert config.rpc_url == "https://rpc.example.org"
        assert config.routes == [f"{TOKEN_A}>{TOKEN_B}"]

    def test_missing_files(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "missing.yaml").read_yaml()
        with pytest.raises(ConfigurationError):
            ConfigManager(env_file=tmp_path / "missing.env").read_environment()

    def test_yaml_must_be_mapping(self, tmp_path):
        config_path = tmp_path / "bot.yaml"
        config_path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(config_path).read_yaml()

    def test_default_template_parses(self):
        data = yaml.safe_load(DEFAULT_CONFIG)

        assert data["amount"] == "0.003"
        assert data["swap_gas_limit"] == 300000


class TestRoutes:
    """Tests for route parsing."""

    def test_parse_route(self):
        route = parse_route(f" {TOKEN_A} > {TOKEN_B} ")

        assert route == Route(TOKEN_A_CHECKSUM, TOKEN_B_CHECKSUM)
        assert route.path == [TOKEN_A_CHECKSUM, TOKEN_B_CHECKSUM]

    def test_parse_routes_preserves_order(self):
        routes = parse_routes(f"{TOKEN_A}>{TOKEN_B},{TOKEN_B}>{TOKEN_A}")

        assert [r.token_in for r in routes] == [TOKEN_A_CHECKSUM, TOKEN_B_CHECKSUM]

    def test_parse_routes_from_list(self):
        routes = parse_routes([f"{TOKEN_A}>{TOKEN_B}"])

        assert len(routes) == 1

    @pytest.mark.parametrize("entry", [
        TOKEN_A,
        f"{TOKEN_A}>{TOKEN_B}>{TOKEN_A}",
        f"{TOKEN_A}>",
        f"{TOKEN_A}>0x1234",
        "foo>bar",
    ])
    def test_malformed_route(self, entry):
        with pytest.raises(ConfigurationError):
            parse_route(entry)

    def test_empty_routes(self):
        with pytest.raises(ConfigurationError):
            parse_routes(" , ")
