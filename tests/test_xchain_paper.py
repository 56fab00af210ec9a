"""
Tests for the cross-chain paper trading runner and CLI.

Tests cover:
- Full cycles against an in-memory chain source
- Partial price failures and degraded gas
- Stop handling and commit-time rejection
- The run_xchain_paper.py entry point
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
import yaml

import run_xchain_paper
from stable_arbitrage.exceptions import NetworkError
from stable_arbitrage.version import get_version
from xchain.ledger import Rejected
from xchain.opportunity_math import (
    REASON_INSUFFICIENT_BALANCE,
    ExecutionPlan,
    NoOpportunity,
)
from xchain.runner import CrossChainRunner, CycleState
from xchain.types import Asset, Trade


@pytest.fixture
def runner(config, fake_source, clock):
    return CrossChainRunner(config, fake_source, time_provider=clock)


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_profitable_cycle_applies_trade(self, runner):
        report = await runner.run_cycle()

        assert report.ok
        assert report.cycle == 1
        assert report.target is Asset.BASE
        assert report.total_gas_usd == pytest.approx(0.10)
        assert isinstance(report.decision, ExecutionPlan)
        assert isinstance(report.trade, Trade)
        assert report.trade.net_profit_usd > 0.5

        snapshot = runner.get_ledger_snapshot()
        assert snapshot["chain_b"].quote == pytest.approx(50000 - report.trade.amount)
        assert snapshot["chain_a"].base == pytest.approx(50000 + report.trade.amount_out)

        stats = runner.get_stats()
        assert stats.total_trades == 1
        assert stats.profitable_trades == 1
        assert report.stats == stats
        assert runner.cycle_state is CycleState.IDLE

    @pytest.mark.asyncio
    async def test_high_threshold_skips_with_reason(self, make_config, fake_source, clock, caplog):
        caplog.set_level(logging.INFO)
        runner = CrossChainRunner(
            make_config(profit_threshold_usd=1000), fake_source, time_provider=clock
        )

        report = await runner.run_cycle()

        assert report.ok
        assert isinstance(report.decision, NoOpportunity)
        assert report.decision.reason == REASON_INSUFFICIENT_BALANCE
        assert report.trade is None
        assert runner.ledger.trade_history() == ()
        assert "insufficient balance" in caplog.text

    @pytest.mark.asyncio
    async def test_one_chain_price_failure_skips_evaluation(self, runner, fake_source, caplog):
        caplog.set_level(logging.INFO)
        fake_source.fail_price.add("chain_b")
        runner.evaluator.evaluate = MagicMock()

        report = await runner.run_cycle()

        runner.evaluator.evaluate.assert_not_called()
        assert not report.ok
        assert "chain_b" in report.error
        assert report.prices["chain_a"] is not None
        assert report.prices["chain_b"] is None
        assert "chain_a price" in caplog.text
        assert runner.ledger.trade_history() == ()
        assert runner.next_delay(report) == runner.config.retry_delay_sec
        latest = runner.get_latest_prices()
        assert set(latest) == {"chain_a"}
        assert latest["chain_a"] is report.prices["chain_a"]

    @pytest.mark.asyncio
    async def test_recovers_on_next_cycle(self, runner, fake_source):
        fake_source.fail_price.add("chain_a")
        first = await runner.run_cycle()
        fake_source.fail_price.clear()
        second = await runner.run_cycle()

        assert not first.ok
        assert second.ok
        assert second.cycle == 2
        assert runner.next_delay(second) == runner.config.poll_interval_sec

    @pytest.mark.asyncio
    async def test_gas_failure_degrades_to_zero(self, runner, fake_source):
        fake_source.fail_gas.update({"chain_a", "chain_b"})

        report = await runner.run_cycle()

        assert report.ok
        assert report.gas_degraded
        assert report.total_gas_usd == 0.0
        assert isinstance(report.decision, ExecutionPlan)

    @pytest.mark.asyncio
    async def test_mismatched_pool_tokens(self, runner, fake_source):
        fake_source.token_order["chain_a"] = ("USDC", "DAI")
        report = await runner.run_cycle()
        assert not report.ok
        assert "chain_a" in report.error

    @pytest.mark.asyncio
    async def test_reversed_token_order_normalizes_the_same(self, runner, fake_source):
        fake_source.token_order["chain_b"] = ("USDT", "USDC")
        fake_source.prices["chain_b"] = 1 / 0.9998

        report = await runner.run_cycle()

        assert report.prices["chain_b"].base_to_quote == pytest.approx(0.9998)
        assert report.decision.buy_chain == "chain_b"

    @pytest.mark.asyncio
    async def test_stop_during_evaluation_prevents_apply(self, runner):
        real_evaluate = runner.evaluator.evaluate

        def evaluate_then_stop(*args, **kwargs):
            decision = real_evaluate(*args, **kwargs)
            runner.stop()
            return decision

        runner.evaluator.evaluate = evaluate_then_stop
        report = await runner.run_cycle()

        assert isinstance(report.decision, ExecutionPlan)
        assert report.trade is None
        assert runner.ledger.trade_history() == ()

    @pytest.mark.asyncio
    async def test_commit_rejection_is_cycle_failure(self, runner):
        real_evaluate = runner.evaluator.evaluate

        def oversized(*args, **kwargs):
            plan = real_evaluate(*args, **kwargs)
            return ExecutionPlan(
                buy_chain=plan.buy_chain,
                sell_chain=plan.sell_chain,
                target=plan.target,
                amount=1_000_000.0,
                buy_price=plan.buy_price,
                sell_price=plan.sell_price,
                gas_cost_usd=plan.gas_cost_usd,
                expected_gross_profit=plan.expected_gross_profit,
                expected_net_profit_usd=plan.expected_net_profit_usd,
            )

        runner.evaluator.evaluate = oversized
        report = await runner.run_cycle()

        assert not report.ok
        assert isinstance(report.rejected, Rejected)
        assert runner.ledger.trade_history() == ()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, runner):
        runner.evaluator.evaluate = MagicMock(side_effect=ZeroDivisionError("boom"))
        report = await runner.run_cycle()
        assert not report.ok
        assert "ZeroDivisionError" in report.error

    @pytest.mark.asyncio
    async def test_cycle_duration_is_logged(self, runner, clock, caplog):
        caplog.set_level(logging.INFO)
        real_fetch = runner.source.fetch_gas_price

        async def slow_gas(chain):
            clock.advance(0.75)
            return await real_fetch(chain)

        runner.source.fetch_gas_price = slow_gas
        report = await runner.run_cycle()

        assert report.duration_sec == pytest.approx(1.5)
        assert "Cycle 1 ok in 1.50s" in caplog.text

    @pytest.mark.asyncio
    async def test_requires_source(self, config):
        runner = CrossChainRunner(config)
        with pytest.raises(RuntimeError):
            await runner.run_cycle()

    @pytest.mark.asyncio
    async def test_report_to_dict(self, runner):
        report = await runner.run_cycle()
        data = report.to_dict()

        assert data["ok"] is True
        assert data["target"] == "base"
        assert data["decision"]["action"] == "EXECUTE"
        assert data["trade"]["status"] == "executed"
        assert set(data["prices"]) == {"chain_a", "chain_b"}
        assert data["error"] is None


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_once_runs_single_cycle(self, make_config, fake_source, clock):
        runner = CrossChainRunner(make_config(once=True), fake_source, time_provider=clock)
        await runner.run_async()
        assert runner.state.cycle_count == 1

    @pytest.mark.asyncio
    async def test_max_cycles(self, make_config, fake_source, clock):
        runner = CrossChainRunner(
            make_config(poll_interval_ms=0), fake_source, time_provider=clock
        )
        await runner.run_async(max_cycles=3)

        assert runner.state.cycle_count == 3
        assert len(runner.ledger.trade_history()) == 3
        assert runner.state.last_report.cycle == 3

    @pytest.mark.asyncio
    async def test_stop_before_start(self, runner):
        runner.stop()
        await runner.run_async()
        assert runner.state.cycle_count == 0

    @pytest.mark.asyncio
    async def test_conservation_over_many_cycles(self, make_config, fake_source, clock):
        runner = CrossChainRunner(
            make_config(poll_interval_ms=0), fake_source, time_provider=clock
        )
        start_value = runner.get_stats().total_portfolio_value_usd

        await runner.run_async(max_cycles=5)

        gross = sum(t.gross_profit for t in runner.ledger.trade_history())
        assert runner.get_stats().total_portfolio_value_usd == pytest.approx(
            start_value + gross, abs=1e-6
        )


class TestCli:
    @pytest.fixture
    def config_path(self, tmp_path, config_dict):
        path = tmp_path / "xchain.yaml"
        path.write_text(yaml.safe_dump(config_dict))
        return str(path)

    @pytest.fixture(autouse=True)
    def isolate_environment(self, monkeypatch):
        monkeypatch.delenv("PROFIT_THRESHOLD", raising=False)
        # Keep pytest's log capture handlers on the root logger
        monkeypatch.setattr(run_xchain_paper.logging_config, "setup", lambda level: None)

    def test_parse_args(self):
        args = run_xchain_paper.parse_args(
            ["--config", "x.yaml", "--once", "--profit-threshold", "1.5"]
        )
        assert args.config == "x.yaml"
        assert args.once is True
        assert args.profit_threshold == 1.5
        assert args.log_level == "INFO"

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_xchain_paper.parse_args(["--version"])
        assert exc_info.value.code == 0
        assert get_version() in capsys.readouterr().out

    def test_missing_config_exits_1(self):
        assert run_xchain_paper.main(["--config", "/nonexistent.yaml"]) == 1

    def test_connection_failure_exits_1(self, config_path):
        with patch.object(
            CrossChainRunner, "connect", side_effect=NetworkError("refused")
        ):
            assert run_xchain_paper.main(["--config", config_path, "--once"]) == 1

    def test_single_cycle_run(self, config_path, make_source):
        runners = []

        def fake_connect(self):
            self.source = make_source()
            self.gas.source = self.source
            runners.append(self)

        with patch.object(CrossChainRunner, "connect", fake_connect):
            code = run_xchain_paper.main(
                ["--config", config_path, "--once", "--profit-threshold", "0.25"]
            )

        assert code == 0
        runner = runners[0]
        assert runner.config.once is True
        assert runner.evaluator.profit_threshold_usd == 0.25
        assert runner.state.cycle_count == 1
        assert len(runner.ledger.trade_history()) == 1
