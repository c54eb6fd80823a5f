import math
import unittest
from types import SimpleNamespace

from prodsim.inputs import parse_inputs
from prodsim.simulation import Simulation
from prodsim.trigger import (
    AttributeTrigger,
    CombinedTrigger,
    ComparisonOperator,
    LogicalOperator,
    TimestepRangeTrigger,
    Trigger,
)


def _step(n: int) -> SimpleNamespace:
    return SimpleNamespace(step=n)


def _one_product_inputs(steps: int = 4):
    return parse_inputs(
        {
            "numberOfTimesteps": steps,
            "materials": {"steel": {"basePrice": 10, "tariffRate": 0, "co2EmissionPerUnit": 0}},
            "products": {"widget": {"producedUnits": 1, "production": {"steelConsumption": 1}}},
        }
    )


class TestTimestepRange(unittest.TestCase):
    def test_bounds_are_inclusive(self):
        trigger = Trigger.timestep_range(5, 10)
        self.assertFalse(trigger.evaluate(_step(4), None))
        for n in range(5, 11):
            self.assertTrue(trigger.evaluate(_step(n), None), n)
        self.assertFalse(trigger.evaluate(_step(11), None))

    def test_default_bounds(self):
        trigger = Trigger.timestep_range()
        self.assertEqual(trigger.min_step, 0)
        self.assertTrue(math.isinf(trigger.max_step))
        self.assertTrue(trigger.evaluate(_step(0), None))
        self.assertTrue(trigger.evaluate(_step(10_000), None))


class TestCombined(unittest.TestCase):
    def test_empty_combination_is_true(self):
        self.assertTrue(Trigger.combined([]).evaluate(_step(3), None))
        self.assertTrue(Trigger.combined([], LogicalOperator.OR).evaluate(_step(3), None))

    def test_and_or(self):
        early = Trigger.timestep_range(0, 2)
        late = Trigger.timestep_range(5)
        self.assertFalse((early & late).evaluate(_step(1), None))
        self.assertTrue((early | late).evaluate(_step(1), None))
        self.assertTrue((early | late).evaluate(_step(6), None))
        self.assertFalse((early | late).evaluate(_step(3), None))

    def test_operators_build_combined_triggers(self):
        combined = Trigger.timestep_range(1) & Trigger.timestep_range(0, 3)
        self.assertIsInstance(combined, CombinedTrigger)
        self.assertIs(combined.logical_operator, LogicalOperator.AND)


class TestAttributeTrigger(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        # Storage holds 1, 2, 3, 4 units at steps 0..3 (one unit made per step, no demand)
        cls.sim = Simulation("trigger", _one_product_inputs()).run()

    def test_reads_previous_timestep(self):
        trigger = Trigger.attribute_threshold("widget_storage", "widget_unitsInStorage", "gt", 1.5)
        self.assertFalse(trigger.evaluate(self.sim.timesteps[1], self.sim))
        self.assertTrue(trigger.evaluate(self.sim.timesteps[2], self.sim))

    def test_reads_current_timestep_at_step_zero(self):
        trigger = Trigger.attribute_threshold("widget_storage", "widget_unitsInStorage", "eq", 1)
        self.assertTrue(trigger.evaluate(self.sim.timesteps[0], self.sim))

    def test_all_comparison_operators(self):
        ts = self.sim.timesteps[1]  # previous value is 1
        expected = {"gt": False, "lt": False, "gte": True, "lte": True, "eq": True, "neq": False}
        for op, result in expected.items():
            trigger = Trigger.attribute_threshold("widget_storage", "widget_unitsInStorage", op, 1)
            self.assertEqual(trigger.evaluate(ts, self.sim), result, op)

    def test_unknown_block_fails_soft(self):
        trigger = Trigger.attribute_threshold("gizmo_storage", "gizmo_unitsInStorage", "gt", 0)
        with self.assertLogs("prodsim.trigger", level="WARNING"):
            self.assertFalse(trigger.evaluate(self.sim.timesteps[2], self.sim))

    def test_unknown_attribute_fails_soft(self):
        trigger = Trigger.attribute_threshold("widget_storage", "widget_nope", "gt", 0)
        with self.assertLogs("prodsim.trigger", level="WARNING"):
            self.assertFalse(trigger.evaluate(self.sim.timesteps[2], self.sim))

    def test_unknown_operator_raises(self):
        with self.assertRaises(ValueError):
            Trigger.attribute_threshold("widget_storage", "widget_demand", "between", 0)


class TestFromDict(unittest.TestCase):
    def test_nested_tree(self):
        trigger = Trigger.from_dict(
            {
                "type": "combined",
                "logical_operator": "or",
                "conditions": [
                    {"type": "timestep_range", "min_timestep": 2, "max_timestep": 4},
                    {
                        "type": "attribute_threshold",
                        "block_id": "widget_storage",
                        "attribute_id": "widget_demand",
                        "operator": "lt",
                        "value": 3,
                    },
                ],
            }
        )
        self.assertIsInstance(trigger, CombinedTrigger)
        self.assertIs(trigger.logical_operator, LogicalOperator.OR)
        self.assertEqual(trigger.conditions[0], TimestepRangeTrigger(2, 4))
        self.assertEqual(
            trigger.conditions[1],
            AttributeTrigger("widget_storage", "widget_demand", ComparisonOperator.LESS_THAN, 3.0),
        )

    def test_open_ended_range_round_trips_as_none(self):
        trigger = Trigger.from_dict({"type": "timestep_range", "min_timestep": 5})
        self.assertTrue(math.isinf(trigger.max_step))
        self.assertIsNone(trigger.to_dict()["max_timestep"])
        self.assertEqual(Trigger.from_dict(trigger.to_dict()), trigger)

    def test_invalid_documents(self):
        bad = [
            {"type": "sometimes"},
            {"type": "timestep_range", "min_timestep": 6, "max_timestep": 2},
            {"type": "timestep_range", "min_timestep": "soon"},
            {"type": "attribute_threshold", "block_id": "widget_storage"},
            {"type": "combined", "conditions": {"type": "timestep_range"}},
            {"type": "combined", "logical_operator": "xor", "conditions": []},
            "timestep_range",
        ]
        for data in bad:
            with self.assertRaises(ValueError, msg=repr(data)):
                Trigger.from_dict(data)


if __name__ == "__main__":
    unittest.main()
