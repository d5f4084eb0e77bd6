import json

import yaml

from trade_emulator.utils.config import Config


def test_defaults():
    config = Config()
    assert config.emulation.initial_cash == 1_000_000
    assert config.emulation.min_buy == 1000
    assert config.emulation.max_buy == 5000
    assert config.emulation.transaction_fee == 0.0
    assert config.emulation.tax_rate == 0.25
    assert config.emulation.serialize_ledger is True
    assert config.strategy.name == "MACD"


def test_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "emulation": {
            "transaction_fee": 7.9,
            "max_workers": 1,
            "symbols": ["AAPL", "MSFT"],
            "unknown_key": 1,
        },
        "strategy": {"name": "RSI", "params": {"rsi_field": "rsi2"}},
        "database": {"host": "db"},
        "log_level": "DEBUG",
    }), encoding="utf-8")

    config = Config.from_yaml(path)

    assert config.emulation.transaction_fee == 7.9
    assert config.emulation.max_workers == 1
    assert config.emulation.symbols == ["AAPL", "MSFT"]
    assert config.emulation.max_buy == 5000
    assert config.strategy.name == "RSI"
    assert config.strategy.params == {"rsi_field": "rsi2"}
    assert config.database.host == "db"
    assert config.database.port == 8123
    assert config.log_level == "DEBUG"


def test_strategy_params_without_params_key():
    config = Config._from_dict({"strategy": {"name": "VIXss", "stretch": 1.1}})
    assert config.strategy.params == {"stretch": 1.1}


def test_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert Config.from_yaml(path) == Config()


def test_save_and_reload(tmp_path):
    config = Config._from_dict({"emulation": {"red_days_exit": 3}})
    path = tmp_path / "out" / "config.yaml"
    config.save_yaml(path)
    assert Config.from_yaml(path).emulation.red_days_exit == 3


def test_load_json_by_suffix(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "emulation": {"max_workers": 2, "symbols": ["TSLA"]},
        "strategy": {"name": "BB"},
    }), encoding="utf-8")

    config = Config.load(path)

    assert config == Config.from_json(path)
    assert config.emulation.max_workers == 2
    assert config.emulation.symbols == ["TSLA"]
    assert config.strategy.name == "BB"


def test_load_yaml_by_default(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text(yaml.dump({"log_dir": "out"}), encoding="utf-8")
    assert Config.load(path).log_dir == "out"
