import io
import math
from dataclasses import replace

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase

from .domain_models import (
    CalculationInputs,
    FeeMode,
    FeeTier,
    PricingMode,
    validate_inputs,
)
from .fee_tiers import SHOPEE_TIERS, FeeTierTable, resolve_fees
from .price_solver import MAX_ITERATIONS, solve_price
from .pricing_engine import (
    compute_result,
    evaluate,
    round_up,
    simulate_prices_for_targets,
)
from .roas_ladder import build_roas_ladder, ladder_frame, ladder_markers
from .services.sku_csv_loader import SkuCsvError, load_sku_catalog_from_csv
from .services.sku_lookup import (
    LOOKUP_ERROR_WARNING,
    NOT_FOUND_WARNING,
    InMemorySkuCatalog,
    SkuLookupError,
    SkuProduct,
    apply_sku_cost,
)
from .services.tier_csv_loader import TierCsvError, load_tier_table_from_csv
from .state import reset_tier_tables, set_sku_catalog


def make_inputs(**overrides) -> CalculationInputs:
    values = dict(
        cost_product=20,
        op_cost_absolute=0,
        op_cost_percent=0,
        fixed_cost_or_shipping=4,
        commission_percent=20,
        tax_percent=4,
        tax_emitted_percent=100,
        ads_percent=5,
        mode=PricingMode.PRICE_FIXED,
        target_value=100,
    )
    values.update(overrides)
    return CalculationInputs(**values)


class CalculationInputsTests(TestCase):
    def test_missing_tax_emitted_percent_means_whole_sale(self):
        inputs = make_inputs(tax_emitted_percent=None)

        self.assertEqual(inputs.invoiced_percent, 100)
        self.assertAlmostEqual(inputs.effective_tax_percent, 4)

    def test_tax_emitted_percent_is_clamped(self):
        self.assertEqual(make_inputs(tax_emitted_percent=150).invoiced_percent, 100)
        self.assertEqual(make_inputs(tax_emitted_percent=-5).invoiced_percent, 0)
        self.assertAlmostEqual(make_inputs(tax_emitted_percent=50).effective_tax_percent, 2)

    def test_fixed_and_percent_costs(self):
        inputs = make_inputs(op_cost_absolute=3, op_cost_percent=2)

        self.assertAlmostEqual(inputs.fixed_costs, 27)
        self.assertAlmostEqual(inputs.percent_costs, 29)

    def test_mode_strings_are_coerced(self):
        inputs = make_inputs(mode="profit_fixed", fee_mode="tiered")

        self.assertIs(inputs.mode, PricingMode.PROFIT_FIXED)
        self.assertIs(inputs.fee_mode, FeeMode.TIERED)

    def test_unknown_mode_is_rejected(self):
        with self.assertRaises(ValueError):
            make_inputs(mode="CHEAPEST")

    def test_validate_inputs(self):
        validate_inputs(make_inputs())

        with self.assertRaises(ValueError):
            validate_inputs(make_inputs(cost_product=-1))
        with self.assertRaises(ValueError):
            validate_inputs(make_inputs(discount_percent=100))

    def test_validate_inputs_rejects_non_finite_numbers(self):
        for overrides in (
            {"commission_percent": math.nan},
            {"ads_percent": math.inf},
            {"op_cost_percent": -math.inf},
            {"tax_emitted_percent": math.nan},
            {"target_value": math.inf},
        ):
            with self.assertRaises(ValueError):
                validate_inputs(make_inputs(**overrides))


class FeeTierTests(TestCase):
    def test_manual_fees_pass_through(self):
        for price in (0, 90, 150, 10_000):
            fees = resolve_fees(price, FeeMode.MANUAL, 17.5, 3)
            self.assertEqual(fees.commission_percent, 17.5)
            self.assertEqual(fees.fixed_fee, 3)
            self.assertIsNone(fees.tier)

    def test_tiered_bands(self):
        at_150 = resolve_fees(150, FeeMode.TIERED, 0, 0)
        at_90 = resolve_fees(90, FeeMode.TIERED, 0, 0)

        self.assertEqual((at_150.commission_percent, at_150.fixed_fee), (14, 20))
        self.assertEqual((at_90.commission_percent, at_90.fixed_fee), (20, 4))
        self.assertNotEqual(at_150.tier, at_90.tier)

    def test_lower_bound_is_inclusive(self):
        self.assertEqual(SHOPEE_TIERS.tier_for(100).fixed_fee, 20)
        self.assertEqual(SHOPEE_TIERS.tier_for(99.99).fixed_fee, 4)
        self.assertEqual(SHOPEE_TIERS.tier_for(500).fixed_fee, 26)

    def test_non_positive_price_uses_lowest_band(self):
        self.assertEqual(SHOPEE_TIERS.tier_for(0), SHOPEE_TIERS.default)
        self.assertEqual(SHOPEE_TIERS.tier_for(-10), SHOPEE_TIERS.default)
        self.assertEqual(SHOPEE_TIERS.tier_for(math.nan), SHOPEE_TIERS.default)

    def test_table_sorts_rows_and_falls_back_to_lowest_band(self):
        table = FeeTierTable(
            [
                FeeTier(lower_bound=50, commission_percent=10, fixed_fee=1),
                FeeTier(lower_bound=200, commission_percent=8, fixed_fee=0),
            ]
        )

        self.assertEqual([tier.lower_bound for tier in table], [200, 50])
        self.assertEqual(table.tier_for(20).lower_bound, 50)
        self.assertEqual(table.tier_for(250).commission_percent, 8)

    def test_empty_table_is_rejected(self):
        with self.assertRaises(ValueError):
            FeeTierTable([])


class PriceSolverTests(TestCase):
    def test_price_fixed_returns_target(self):
        for target in (0.01, 59.9, 100, 12_345.67):
            outcome = solve_price(make_inputs(target_value=target))
            self.assertEqual(outcome.price, target)
            self.assertTrue(outcome.converged)

    def test_profit_fixed(self):
        inputs = make_inputs(mode=PricingMode.PROFIT_FIXED, target_value=50)
        price = solve_price(inputs).price

        self.assertAlmostEqual(price, 74 / 0.71)
        self.assertAlmostEqual(round(price, 2), 104.23)
        self.assertAlmostEqual(compute_result(price, inputs).net_profit, 50)

    def test_profit_fixed_unreachable_when_fees_eat_the_price(self):
        inputs = make_inputs(mode=PricingMode.PROFIT_FIXED, target_value=50, commission_percent=95)

        self.assertEqual(solve_price(inputs).price, 0)

    def test_gross_margin_fixed(self):
        inputs = make_inputs(mode=PricingMode.GROSS_MARGIN_FIXED, target_value=20)
        price = solve_price(inputs).price

        self.assertAlmostEqual(price, 24 / 0.51)
        self.assertAlmostEqual(compute_result(price, inputs).gross_margin_percent, 20)

    def test_gross_margin_fixed_unreachable(self):
        inputs = make_inputs(mode=PricingMode.GROSS_MARGIN_FIXED, target_value=75)

        self.assertEqual(solve_price(inputs).price, 0)

    def test_net_margin_dynamic_converges(self):
        cases = [
            make_inputs(),
            make_inputs(
                cost_product=35,
                op_cost_absolute=3,
                op_cost_percent=2,
                fixed_cost_or_shipping=6,
                commission_percent=16,
                tax_percent=6,
                tax_emitted_percent=50,
                ads_percent=4,
            ),
        ]
        for base_inputs in cases:
            for target in (5, 15, 30, 45, 70):
                inputs = replace(base_inputs, mode=PricingMode.NET_MARGIN_DYNAMIC, target_value=target)
                outcome = solve_price(inputs)

                self.assertTrue(outcome.converged, f"target {target}")
                self.assertLessEqual(outcome.iterations, MAX_ITERATIONS)
                result = compute_result(outcome.price, inputs)
                self.assertLess(abs(result.net_margin_percent - target), 0.01)

    def test_net_margin_dynamic_known_price(self):
        # 20 + 0.09P = 0.7 * (0.8P - 4)  =>  P = 22.8 / 0.47
        inputs = make_inputs(mode=PricingMode.NET_MARGIN_DYNAMIC, target_value=30)

        self.assertAlmostEqual(solve_price(inputs).price, 22.8 / 0.47, places=1)

    def test_net_margin_dynamic_infeasible_target_stops_at_cap(self):
        # With these costs the net margin can never pass 88.75%.
        inputs = make_inputs(mode=PricingMode.NET_MARGIN_DYNAMIC, target_value=95)
        outcome = solve_price(inputs)

        self.assertFalse(outcome.converged)
        self.assertEqual(outcome.iterations, MAX_ITERATIONS)
        self.assertTrue(math.isfinite(outcome.price))

    def test_net_margin_dynamic_without_fixed_costs(self):
        inputs = make_inputs(
            cost_product=0,
            fixed_cost_or_shipping=0,
            mode=PricingMode.NET_MARGIN_DYNAMIC,
            target_value=30,
        )
        outcome = solve_price(inputs)

        self.assertEqual(outcome.price, 0)
        self.assertFalse(outcome.converged)


class ResultCalculatorTests(TestCase):
    def test_price_fixed_scenario(self):
        result = compute_result(100, make_inputs())

        self.assertEqual(result.final_price, 100)
        self.assertAlmostEqual(result.commission_amount, 20)
        self.assertAlmostEqual(result.tax_amount, 4)
        self.assertAlmostEqual(result.ads_amount, 5)
        self.assertAlmostEqual(result.net_profit, 47)
        self.assertAlmostEqual(result.gross_margin_percent, 47)
        self.assertAlmostEqual(result.net_margin_percent, 47 / 76 * 100)
        self.assertAlmostEqual(round(result.net_margin_percent, 2), 61.84)
        self.assertAlmostEqual(result.total_cost, 24)
        self.assertAlmostEqual(result.break_even_roas, 1.93)
        self.assertAlmostEqual(result.ideal_roas, 20)
        self.assertEqual(result.pre_discount_price, 100)

    def test_round_up_never_rounds_down(self):
        self.assertEqual(round_up(1.921, 2), 1.93)
        self.assertEqual(round_up(2.0, 2), 2.0)
        self.assertEqual(round_up(0.001, 2), 0.01)

    def test_break_even_roas_covers_the_price(self):
        inputs = make_inputs(op_cost_absolute=2.5, op_cost_percent=3, tax_emitted_percent=70)
        for price in (37.3, 64.99, 100, 251.7, 999.01):
            result = compute_result(price, inputs)
            ads_free_base = (
                price
                - result.commission_amount
                - inputs.fixed_cost_or_shipping
                - inputs.cost_product
                - inputs.op_cost_absolute
                - result.tax_amount
                - result.op_cost_percent_amount
            )
            self.assertGreater(ads_free_base, 0)
            self.assertGreaterEqual(result.break_even_roas * ads_free_base, price - 1e-9)

    def test_no_ads_means_unbounded_ideal_roas(self):
        self.assertEqual(compute_result(100, make_inputs(ads_percent=0)).ideal_roas, math.inf)
        self.assertEqual(compute_result(0, make_inputs(ads_percent=0)).ideal_roas, math.inf)

    def test_invalid_price_zeroes_everything(self):
        for price in (0, -5, math.inf, math.nan):
            result = compute_result(price, make_inputs())
            self.assertFalse(result.is_valid)
            self.assertEqual(result.final_price, 0)
            self.assertEqual(result.net_profit, 0)
            self.assertEqual(result.total_cost, 0)
            self.assertEqual(result.break_even_roas, 0)
            self.assertEqual(result.ideal_roas, 0)

    def test_discount_back_computes_sticker_price(self):
        result = compute_result(100, make_inputs(discount_percent=20))

        self.assertAlmostEqual(result.pre_discount_price, 125)

    def test_partial_invoice_lowers_tax(self):
        result = compute_result(100, make_inputs(tax_emitted_percent=50))

        self.assertAlmostEqual(result.tax_amount, 2)
        self.assertAlmostEqual(result.net_profit, 49)

    def test_degenerate_net_base(self):
        result = compute_result(3, make_inputs())

        self.assertEqual(result.net_margin_percent, 0)
        self.assertEqual(result.break_even_roas, 0)
        self.assertLess(result.net_profit, 0)

    def test_non_finite_percent_zeroes_roas_instead_of_raising(self):
        for commission in (math.nan, math.inf, 1e308):
            result = compute_result(100, make_inputs(commission_percent=commission))
            self.assertEqual(result.break_even_roas, 0)
            self.assertEqual(result.ideal_roas, 0)

        result = evaluate(make_inputs(tax_percent=math.nan))
        self.assertEqual(result.break_even_roas, 0)


class EvaluateTests(TestCase):
    def test_manual_fees_match_direct_computation(self):
        inputs = make_inputs()
        result = evaluate(inputs)

        self.assertAlmostEqual(result.net_profit, compute_result(100, inputs).net_profit)
        self.assertEqual(result.applied_fees.commission_percent, 20)
        self.assertIsNone(result.applied_fees.tier)
        self.assertTrue(result.tier_stable)

    def test_tiered_price_fixed_uses_band_of_target(self):
        result = evaluate(make_inputs(target_value=150, fee_mode=FeeMode.TIERED))

        self.assertEqual(result.applied_fees.commission_percent, 14)
        self.assertEqual(result.applied_fees.fixed_fee, 20)
        self.assertAlmostEqual(result.commission_amount, 21)
        self.assertAlmostEqual(result.net_profit, 150 - 21 - 20 - 20 - 6 - 7.5)

    def test_tiered_profit_target_moves_to_higher_band(self):
        inputs = make_inputs(
            cost_product=80,
            mode=PricingMode.PROFIT_FIXED,
            target_value=20,
            fee_mode=FeeMode.TIERED,
        )
        result = evaluate(inputs)

        # The lowest band suggests ~146.48, which sits in the 100+ band.
        self.assertEqual(result.applied_fees.tier, SHOPEE_TIERS.tier_for(150))
        self.assertAlmostEqual(result.final_price, 120 / 0.77)
        self.assertAlmostEqual(result.net_profit, 20)
        self.assertTrue(result.tier_stable)

    def test_tier_applied_matches_tier_of_final_price(self):
        for mode, target in (
            (PricingMode.PROFIT_FIXED, 5),
            (PricingMode.PROFIT_FIXED, 60),
            (PricingMode.GROSS_MARGIN_FIXED, 25),
            (PricingMode.NET_MARGIN_DYNAMIC, 30),
            (PricingMode.NET_MARGIN_DYNAMIC, 50),
        ):
            result = evaluate(make_inputs(mode=mode, target_value=target, fee_mode=FeeMode.TIERED))
            self.assertTrue(result.converged)
            self.assertTrue(result.tier_stable)
            self.assertEqual(result.applied_fees.tier, SHOPEE_TIERS.tier_for(result.final_price))

    def test_custom_tier_table(self):
        table = FeeTierTable(
            [
                FeeTier(lower_bound=0, commission_percent=12, fixed_fee=6),
                FeeTier(lower_bound=79, commission_percent=12, fixed_fee=0),
            ]
        )
        result = evaluate(make_inputs(target_value=120, fee_mode=FeeMode.TIERED), table)

        self.assertEqual(result.applied_fees.fixed_fee, 0)
        self.assertAlmostEqual(result.commission_amount, 14.4)

    def test_tier_that_does_not_settle_stops_after_second_pass(self):
        table = FeeTierTable(
            [
                FeeTier(lower_bound=0, commission_percent=50, fixed_fee=0),
                FeeTier(lower_bound=100, commission_percent=0, fixed_fee=0),
            ]
        )
        inputs = make_inputs(
            cost_product=60,
            fixed_cost_or_shipping=0,
            tax_percent=0,
            ads_percent=0,
            mode=PricingMode.PROFIT_FIXED,
            target_value=0,
            fee_mode=FeeMode.TIERED,
        )

        # 50% commission gives 120, the 100 band then gives 60, back in the lowest band.
        with self.assertLogs("margins.pricing_engine", level="WARNING"):
            result = evaluate(inputs, table)

        self.assertEqual(result.final_price, 60)
        self.assertEqual(result.applied_fees.tier.lower_bound, 100)
        self.assertFalse(result.tier_stable)
        self.assertTrue(result.converged)

    def test_unreachable_net_margin_is_reported_not_raised(self):
        result = evaluate(make_inputs(mode=PricingMode.NET_MARGIN_DYNAMIC, target_value=95))

        self.assertFalse(result.converged)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.final_price, 0)
        self.assertEqual(result.solver_iterations, MAX_ITERATIONS)
        self.assertGreater(result.best_effort_price, 0)

    def test_unreachable_profit_target_is_zeroed(self):
        result = evaluate(
            make_inputs(mode=PricingMode.PROFIT_FIXED, target_value=10, commission_percent=99, ads_percent=0)
        )

        self.assertEqual(result.final_price, 0)
        self.assertEqual(result.ideal_roas, math.inf)

    def test_evaluations_do_not_share_state(self):
        inputs = make_inputs(mode=PricingMode.NET_MARGIN_DYNAMIC, target_value=25)

        self.assertEqual(evaluate(inputs), evaluate(inputs))

    def test_simulate_prices_for_targets(self):
        targets = [10, 30, 50]
        scenarios = simulate_prices_for_targets(make_inputs(mode=PricingMode.PROFIT_FIXED), targets)

        self.assertEqual([scenario.target_value for scenario in scenarios], targets)
        prices = [scenario.final_price for scenario in scenarios]
        self.assertTrue(all(earlier < later for earlier, later in zip(prices, prices[1:])))
        for scenario in scenarios:
            self.assertAlmostEqual(scenario.net_profit, scenario.target_value)

    def test_simulate_prices_for_targets_with_tier_table(self):
        scenarios = simulate_prices_for_targets(
            make_inputs(fee_mode=FeeMode.TIERED), [90, 150], SHOPEE_TIERS
        )

        self.assertAlmostEqual(scenarios[0].net_profit, 90 - 18 - 4 - 20 - 3.6 - 4.5)
        self.assertAlmostEqual(scenarios[1].net_profit, 150 - 21 - 20 - 20 - 6 - 7.5)


class RoasLadderTests(TestCase):
    def setUp(self):
        self.ladder = build_roas_ladder(make_inputs(), current_roas_7d=4.7)

    def test_price_is_solved_without_ads(self):
        self.assertEqual(self.ladder.price, 100)
        self.assertAlmostEqual(self.ladder.base_profit, 52)
        self.assertAlmostEqual(self.ladder.base_gross_margin, 52)
        self.assertAlmostEqual(self.ladder.base_net_margin, 52 / 72 * 100)
        self.assertEqual(self.ladder.current_roas, 4)

    def test_rows(self):
        rows = self.ladder.rows
        self.assertEqual(len(rows), 30)
        self.assertEqual([row.roas for row in rows[:3]], [1, 2, 3])

        first, second = rows[0], rows[1]
        self.assertAlmostEqual(first.ads_amount, 100)
        self.assertAlmostEqual(first.profit_platform_only, -44)
        self.assertEqual(first.variant, "danger")

        self.assertAlmostEqual(second.profit_platform_only, 6)
        self.assertAlmostEqual(second.net_margin_platform_only, 6 / 26 * 100)
        self.assertAlmostEqual(second.profit_full_costs, 2)
        self.assertAlmostEqual(second.net_margin_full_costs, 2 / 22 * 100)
        self.assertEqual(second.variant, "success")

    def test_markers(self):
        full = ladder_markers(self.ladder.rows)
        platform = ladder_markers(self.ladder.rows, platform_only=True)

        self.assertEqual((full.break_even, full.minimum, full.ideal), (2, 3, 3))
        self.assertEqual((platform.break_even, platform.minimum, platform.ideal), (2, 2, 2))

    def test_frame(self):
        frame = ladder_frame(self.ladder)

        self.assertEqual(frame.shape, (30, 8))
        self.assertEqual(frame.index.name, "roas")
        self.assertAlmostEqual(frame.loc[2, "profit_full_costs"], 2)

    def test_invalid_price_gives_empty_ladder(self):
        ladder = build_roas_ladder(make_inputs(target_value=0))

        self.assertEqual(ladder.rows, [])
        self.assertEqual(ladder.price, 0)


class TierCsvLoaderTests(TestCase):
    def test_load_tier_table(self):
        csv_content = (
            "lower_bound,commission_percent,fixed_fee\n"
            "0,20,4\n"
            "100,14,20\n"
        )
        table = load_tier_table_from_csv(io.StringIO(csv_content))

        self.assertEqual(
            list(table),
            [
                FeeTier(lower_bound=100, commission_percent=14, fixed_fee=20),
                FeeTier(lower_bound=0, commission_percent=20, fixed_fee=4),
            ],
        )

    def test_missing_columns(self):
        with self.assertRaises(TierCsvError):
            load_tier_table_from_csv(io.StringIO("lower_bound,fixed_fee\n0,4\n"))

    def test_invalid_values(self):
        header = "lower_bound,commission_percent,fixed_fee\n"
        for body in ("0,twenty,4\n", "0,20,-1\n", ""):
            with self.assertRaises(TierCsvError):
                load_tier_table_from_csv(io.StringIO(header + body))


class SkuTests(TestCase):
    def setUp(self):
        self.catalog = InMemorySkuCatalog(
            [SkuProduct(sku="CAB-USB-C", name="USB-C cable", cost_price=12.5)]
        )

    def test_found_sku_sets_and_locks_cost(self):
        outcome = apply_sku_cost(make_inputs(cost_product=99), "cab-usb-c", self.catalog)

        self.assertEqual(outcome.inputs.cost_product, 12.5)
        self.assertTrue(outcome.cost_locked)
        self.assertEqual(outcome.product_name, "USB-C cable")
        self.assertEqual(outcome.warning, "")

    def test_unknown_sku_keeps_manual_cost(self):
        outcome = apply_sku_cost(make_inputs(cost_product=99), "NOPE", self.catalog)

        self.assertEqual(outcome.inputs.cost_product, 99)
        self.assertFalse(outcome.cost_locked)
        self.assertEqual(outcome.warning, NOT_FOUND_WARNING)

    def test_failing_lookup_keeps_manual_cost(self):
        class BrokenLookup:
            def lookup(self, sku):
                raise SkuLookupError("catalogue offline")

        with self.assertLogs("margins.services.sku_lookup", level="ERROR"):
            outcome = apply_sku_cost(make_inputs(cost_product=99), "CAB-USB-C", BrokenLookup())

        self.assertEqual(outcome.inputs.cost_product, 99)
        self.assertEqual(outcome.warning, LOOKUP_ERROR_WARNING)

    def test_blank_sku_clears_cost(self):
        outcome = apply_sku_cost(make_inputs(cost_product=99), "  ", self.catalog)

        self.assertEqual(outcome.inputs.cost_product, 0)
        self.assertFalse(outcome.cost_locked)

    def test_load_sku_catalog(self):
        catalog = load_sku_catalog_from_csv(
            io.StringIO("sku,name,cost_price\nA-1,Mug,7.5\n\nB-2,Plate,3\n")
        )

        self.assertEqual(len(catalog), 2)
        self.assertEqual(catalog.lookup("b-2").cost_price, 3)

    def test_load_sku_catalog_rejects_bad_rows(self):
        for content in ("A-1,Mug\n", "A-1,Mug,cheap\n", ",Mug,1\n"):
            with self.assertRaises(SkuCsvError):
                load_sku_catalog_from_csv(io.StringIO(content))


class ViewTests(TestCase):
    scenario = {
        "cost_product": "20",
        "fixed_cost_or_shipping": "4",
        "commission_percent": "20",
        "tax_percent": "4",
        "ads_percent": "5",
        "mode": "PRICE_FIXED",
        "target_value": "100",
    }

    def tearDown(self):
        reset_tier_tables()
        set_sku_catalog(InMemorySkuCatalog())

    def test_calculate(self):
        response = self.client.get("/margins/calculate/", self.scenario)

        self.assertEqual(response.status_code, 200)
        result = response.json()["result"]
        self.assertEqual(result["final_price"], 100)
        self.assertAlmostEqual(result["net_profit"], 47)
        self.assertAlmostEqual(result["ideal_roas"], 20)
        self.assertFalse(result["ideal_roas_unbounded"])
        self.assertTrue(result["is_valid"])

    def test_calculate_without_ads_sends_null_ideal_roas(self):
        response = self.client.post("/margins/calculate/", {**self.scenario, "ads_percent": "0"})

        result = response.json()["result"]
        self.assertIsNone(result["ideal_roas"])
        self.assertTrue(result["ideal_roas_unbounded"])

    def test_calculate_rejects_bad_input(self):
        missing_mode = {key: value for key, value in self.scenario.items() if key != "mode"}
        for params in (
            missing_mode,
            {**self.scenario, "target_value": "abc"},
            {**self.scenario, "cost_product": "-3"},
            {**self.scenario, "commission_percent": "nan"},
            {**self.scenario, "ads_percent": "inf"},
            {**self.scenario, "tax_emitted_percent": "nan"},
            {**self.scenario, "fee_mode": "TIERED", "marketplace": "NOWHERE"},
        ):
            response = self.client.get("/margins/calculate/", params)
            self.assertEqual(response.status_code, 400)
            self.assertTrue(response.json()["errors"])

    def test_tiered_calculation_defaults_to_shopee(self):
        response = self.client.get(
            "/margins/calculate/",
            {**self.scenario, "fee_mode": "TIERED", "target_value": "150"},
        )

        fees = response.json()["result"]["applied_fees"]
        self.assertEqual(fees["commission_percent"], 14)
        self.assertEqual(fees["fixed_fee"], 20)

    def test_uploaded_tier_table_is_used(self):
        upload = SimpleUploadedFile(
            "meli.csv", b"lower_bound,commission_percent,fixed_fee\n0,12,6\n79,12,0\n"
        )
        response = self.client.post(
            "/margins/tiers/upload/", {"marketplace": "meli", "tier_file": upload}
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("MELI", response.json()["marketplaces"])

        response = self.client.get(
            "/margins/calculate/",
            {**self.scenario, "fee_mode": "TIERED", "marketplace": "MELI", "target_value": "120"},
        )
        self.assertEqual(response.json()["result"]["applied_fees"]["fixed_fee"], 0)

    def test_tier_upload_rejects_bad_file(self):
        upload = SimpleUploadedFile("tiers.txt", b"lower_bound\n0\n")
        response = self.client.post(
            "/margins/tiers/upload/", {"marketplace": "X", "tier_file": upload}
        )

        self.assertEqual(response.status_code, 400)

    def test_sku_cost_is_used(self):
        upload = SimpleUploadedFile("skus.csv", b"sku,name,cost_price\nABC-1,Cable,20\n")
        response = self.client.post("/margins/skus/upload/", {"sku_file": upload})
        self.assertEqual(response.json()["products"], 1)

        response = self.client.get(
            "/margins/calculate/", {**self.scenario, "cost_product": "999", "sku": "abc-1"}
        )
        payload = response.json()
        self.assertTrue(payload["sku"]["cost_locked"])
        self.assertAlmostEqual(payload["result"]["net_profit"], 47)

    def test_roas_ladder(self):
        response = self.client.get("/margins/roas-ladder/", self.scenario)

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(len(payload["ladder"]["rows"]), 30)
        self.assertEqual(payload["markers"]["full_costs"]["break_even"], 2)
