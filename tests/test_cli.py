from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from dynamic_waits import cli


def run(capsys, *argv):
    cli.main(list(argv))
    return json.loads(capsys.readouterr().out)


def test_profiles_lists_every_profile(capsys):
    data = run(capsys, "profiles", "--base-timeout", "10")
    assert data["ok"] is True
    names = [row["name"] for row in data["profiles"]]
    assert names[0] == "fast"
    assert "slow-3g" in names
    timeouts = [row["effective_timeout"] for row in data["profiles"]]
    assert timeouts == sorted(timeouts)
    assert max(timeouts) <= 50


def test_policy_prints_resolved_policies(capsys, tmp_path):
    path = tmp_path / "waits.json"
    path.write_text(json.dumps({"policies": {"finish": {"timeout": 10, "ignore": ["no_such_element"]}}}), encoding="utf-8")
    data = run(capsys, "policy", "--config", str(path))
    assert data["policies"]["finish"] == {
        "type": "fixed",
        "timeout": 10,
        "poll_interval": 0.5,
        "backoff_factor": 1.0,
        "max_interval": None,
        "ignore": ["no_such_element"],
    }


def test_bad_config_exits_2(capsys, tmp_path):
    path = tmp_path / "waits.json"
    path.write_text(json.dumps({"policies": {"finish": {"timeout": -1}}}), encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["policy", "--config", str(path)])
    assert excinfo.value.code == 2
    data = json.loads(capsys.readouterr().out)
    assert data["ok"] is False
    assert "invalid policy config" in data["error"]


def test_adapt_replays_outcomes(capsys):
    data = run(capsys, "adapt", "--base-timeout", "10", "--outcome", "timeout", "--outcome", "timeout", "--outcome", "cancelled")
    steps = data["steps"]
    assert steps[0]["outcome"] is None
    assert steps[0]["effective_timeout"] == 10
    assert steps[1]["reliability"] == pytest.approx(1.075)
    assert steps[2]["effective_timeout"] > steps[1]["effective_timeout"]
    assert steps[3]["reliability"] == steps[2]["reliability"]


def test_adapt_fast_successes_shrink(capsys):
    data = run(capsys, "adapt", "--profile", "slow-3g", "--outcome", "ok")
    assert data["profile"] == "slow-3g"
    assert data["steps"][1]["reliability"] < 1.0


def test_doctor_without_probe(capsys, monkeypatch):
    monkeypatch.delenv("DYNAMIC_WAITS_TIMEOUT", raising=False)
    data = run(capsys, "doctor")
    assert "network_probe" not in data["checks"]
    assert data["checks"]["env_policy"]["ok"] is True
    assert data["checks"]["jsonschema"]["ok"] is True


def test_doctor_reports_bad_env(capsys, monkeypatch):
    monkeypatch.setenv("DYNAMIC_WAITS_TIMEOUT", "-5")
    data = run(capsys, "doctor")
    assert data["ok"] is False
    assert data["checks"]["env_policy"]["ok"] is False


def test_doctor_probes_url_once_per_sample(capsys, monkeypatch):
    monkeypatch.delenv("DYNAMIC_WAITS_TIMEOUT", raising=False)
    session = MagicMock()
    with patch("dynamic_waits.network.requests.Session", return_value=session):
        data = run(capsys, "doctor", "--probe-url", "https://example.test")
    probe = data["checks"]["network_probe"]
    assert probe["ok"] is True
    assert probe["details"]["profile"] == "fast"
    assert session.head.call_count == 3
