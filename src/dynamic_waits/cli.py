from __future__ import annotations

import argparse
import importlib.util
import json
import logging
import os
from typing import Any, Dict, List, Optional

from .adaptive import AdaptiveTimeoutPolicy, ReliabilityTuning
from .config import ENV_PREFIX, Timeouts, load_policy_config, policy_from_env
from .diagnostics import diagnose
from .errors import ConfigurationError
from .network import PROFILES, ProbeNetworkProvider, classify, get_profile, scaling_factor
from .outcome import FailureKind, WaitOutcome

DEMO_BASE_URL = "https://the-internet.herokuapp.com"


def pretty_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Adaptive condition-polling waits for browser automation")
    parser.add_argument(
        "--log-level",
        default=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "WARNING"),
        help="Logging level (default: $DYNAMIC_WAITS_LOG_LEVEL or WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_profiles = sub.add_parser("profiles", help="List network profiles and their timeout scaling")
    p_profiles.add_argument("--base-timeout", type=float, default=Timeouts.MEDIUM_WAIT)
    p_profiles.add_argument("--cap-multiple", type=float, default=5.0)

    p_policy = sub.add_parser("policy", help="Validate a policy config file and print the resolved policies")
    p_policy.add_argument("--config", required=True, help="Path to JSON policy config")
    p_policy.add_argument("--name", help="Only print this policy")

    p_adapt = sub.add_parser("adapt", help="Replay wait outcomes through an adaptive timeout policy")
    p_adapt.add_argument("--base-timeout", type=float, default=Timeouts.MEDIUM_WAIT)
    p_adapt.add_argument("--profile", default="fast", choices=sorted(PROFILES))
    p_adapt.add_argument("--smoothing", type=float, default=0.3)
    p_adapt.add_argument(
        "--outcome",
        action="append",
        default=[],
        choices=["ok", "slow", "timeout", "error", "cancelled"],
        help="Observed outcome, repeatable, applied in order",
    )

    p_demo = sub.add_parser("demo", help="Run a tutorial scenario against the-internet.herokuapp.com")
    p_demo.add_argument("scenario", choices=["dynamic-loading", "dropdown"])
    p_demo.add_argument("--example", type=int, choices=[1, 2], default=1, help="Dynamic loading example page")
    p_demo.add_argument("--option", default="Option 1", help="Dropdown option text")
    p_demo.add_argument("--value", default=None, help="Dropdown option value")
    p_demo.add_argument("--profile", default=None, choices=sorted(PROFILES), help="Simulate a network profile")
    p_demo.add_argument("--timeout", type=float, default=None, help="Base timeout (default from env)")
    p_demo.add_argument("--headed", action="store_true", help="Show the browser window")
    p_demo.add_argument("--base-url", default=DEMO_BASE_URL)

    p_doctor = sub.add_parser("doctor", help="Run local environment preflight checks")
    p_doctor.add_argument("--probe-url", default="", help="Optional URL to measure network latency against")

    return parser.parse_args(argv)


def _profiles(base_timeout: float, cap_multiple: float) -> Dict[str, Any]:
    rows = []
    for profile in sorted(PROFILES.values(), key=lambda p: p.severity):
        policy = AdaptiveTimeoutPolicy(base_timeout=base_timeout, profile=profile, cap_multiple=cap_multiple)
        rows.append(
            {
                **profile.as_dict(),
                "scaling_factor": scaling_factor(profile),
                "effective_timeout": round(policy.effective_timeout(), 3),
            }
        )
    return {"ok": True, "base_timeout": base_timeout, "profiles": rows}


def _describe_policy(policy: Any) -> Dict[str, Any]:
    if isinstance(policy, AdaptiveTimeoutPolicy):
        return {
            "type": "adaptive",
            "base_timeout": policy.base_timeout,
            "profile": policy.profile.name,
            "reliability": policy.reliability,
            "cap_multiple": policy.cap_multiple,
            "effective_timeout": round(policy.effective_timeout(), 3),
            "poll_interval": policy.poll_interval,
            "ignore": sorted(policy.ignored_failure_kinds),
        }
    return {
        "type": "fixed",
        "timeout": policy.timeout,
        "poll_interval": policy.poll_interval,
        "backoff_factor": policy.backoff_factor,
        "max_interval": policy.max_interval,
        "ignore": sorted(policy.ignored_failure_kinds),
    }


def _synthetic_outcome(name: str, timeout: float, slow_ratio: float) -> WaitOutcome:
    if name == "ok":
        return WaitOutcome.success(True, timeout * slow_ratio / 2, 1)
    if name == "slow":
        return WaitOutcome.success(True, timeout * slow_ratio, 1)
    if name == "timeout":
        return WaitOutcome.failure(FailureKind.TIMEOUT, timeout, 1)
    if name == "error":
        return WaitOutcome.failure(FailureKind.PERMANENT, 0.0, 1, "application error")
    return WaitOutcome.failure(FailureKind.CANCELLED, 0.0, 0)


def _adapt(args: argparse.Namespace) -> Dict[str, Any]:
    policy = AdaptiveTimeoutPolicy(
        base_timeout=args.base_timeout,
        profile=get_profile(args.profile),
        tuning=ReliabilityTuning(smoothing=args.smoothing),
    )
    steps = [{"outcome": None, "reliability": policy.reliability, "effective_timeout": round(policy.effective_timeout(), 3)}]
    for name in args.outcome:
        outcome = _synthetic_outcome(name, policy.effective_timeout(), policy.tuning.slow_ratio)
        policy = policy.record(outcome)
        steps.append(
            {
                "outcome": name,
                "reliability": round(policy.reliability, 4),
                "effective_timeout": round(policy.effective_timeout(), 3),
            }
        )
    return {"ok": True, "profile": policy.profile.name, "steps": steps}


def _create_driver(headless: bool):
    from selenium import webdriver
    from selenium.webdriver.chrome.options import Options as ChromeOptions

    options = ChromeOptions()
    if headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    return webdriver.Chrome(options=options)


def _run_demo(args: argparse.Namespace) -> Dict[str, Any]:
    from selenium.webdriver.common.by import By

    from .dropdown import select_option
    from .engine import WaitEngine
    from .network import SeleniumNetworkProvider
    from .selenium_conditions import (
        TRANSIENT_KINDS,
        element_to_be_clickable,
        invisibility_of,
        text_to_be,
    )

    base = policy_from_env()
    if args.timeout is not None:
        base = base.with_timeout(args.timeout)
    profile = get_profile(args.profile) if args.profile else get_profile("fast")
    adaptive = AdaptiveTimeoutPolicy(
        base_timeout=base.timeout,
        profile=profile,
        poll_interval=base.poll_interval,
        ignored_failure_kinds=TRANSIENT_KINDS,
        backoff_factor=base.backoff_factor,
    )
    policy = adaptive.to_poll_policy()
    engine = WaitEngine()
    steps: List[Dict[str, Any]] = []
    outcome: Optional[WaitOutcome] = None

    driver = _create_driver(headless=not args.headed)
    try:
        if args.profile:
            SeleniumNetworkProvider(driver).simulate(profile)

        if args.scenario == "dropdown":
            driver.get(f"{args.base_url}/dropdown")
            outcome = select_option(driver, (By.CSS_SELECTOR, "#dropdown"), args.option, args.value, policy, engine)
            steps.append({"step": "select_option", **outcome.as_dict()})
        else:
            driver.get(f"{args.base_url}/dynamic_loading/{args.example}")
            plan = [
                ("click_start", element_to_be_clickable((By.CSS_SELECTOR, "#start button"))),
                ("loading_gone", invisibility_of((By.ID, "loading"))),
                ("finish_text", text_to_be((By.ID, "finish"), "Hello World!")),
            ]
            for name, condition in plan:
                outcome = engine.wait(condition, policy, target=driver)
                steps.append({"step": name, **outcome.as_dict()})
                adaptive = adaptive.record(outcome)
                if not outcome.ok:
                    break
                if name == "click_start":
                    outcome.value.click()
    finally:
        driver.quit()

    ok = outcome is not None and outcome.ok
    return {
        "ok": ok,
        "scenario": args.scenario,
        "profile": profile.name,
        "timeout": round(policy.timeout, 3),
        "next_reliability": round(adaptive.reliability, 4),
        "steps": steps,
        "diagnosis": diagnose(outcome).as_dict() if outcome is not None else None,
    }


def _doctor(probe_url: str) -> Dict[str, Any]:
    checks: Dict[str, Dict[str, Any]] = {}
    for module in ("selenium", "playwright", "jsonschema", "requests"):
        checks[module] = {
            "ok": importlib.util.find_spec(module) is not None,
            "details": f"python module '{module}'",
        }
    try:
        policy = policy_from_env()
        checks["env_policy"] = {"ok": True, "details": _describe_policy(policy)}
    except ConfigurationError as exc:
        checks["env_policy"] = {"ok": False, "details": str(exc)}
    if probe_url:
        provider = ProbeNetworkProvider(probe_url)
        latency = provider.measure_latency_ms()
        checks["network_probe"] = {
            "ok": latency is not None,
            "details": {
                "url": probe_url,
                "latency_ms": None if latency is None else round(latency, 1),
                "profile": classify(latency).name if latency is not None else "offline",
            },
        }
    overall_ok = all(item["ok"] for item in checks.values())
    return {"ok": overall_ok, "checks": checks}


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        if args.command == "profiles":
            print(pretty_json(_profiles(args.base_timeout, args.cap_multiple)))
            return

        if args.command == "policy":
            config = load_policy_config(args.config)
            names = [args.name] if args.name else sorted(config.policies)
            policies = {name: _describe_policy(config.get(name)) for name in names}
            print(pretty_json({"ok": True, "source": str(config.source), "policies": policies}))
            return

        if args.command == "adapt":
            print(pretty_json(_adapt(args)))
            return

        if args.command == "demo":
            result = _run_demo(args)
            print(pretty_json(result))
            if not result["ok"]:
                raise SystemExit(1)
            return

        if args.command == "doctor":
            print(pretty_json(_doctor(args.probe_url)))
            return
    except ConfigurationError as exc:
        print(pretty_json({"ok": False, "error": str(exc)}))
        raise SystemExit(2)


if __name__ == "__main__":
    main()
