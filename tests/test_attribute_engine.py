import unittest

from prodsim.attribute import AttributeState
from prodsim.block_factory import BlockDefinition
from prodsim.errors import (
    BlockNotFound,
    CyclicDependency,
    DuplicateAttribute,
    SimulationError,
    UnknownAttribute,
    UnresolvedAttribute,
)
from prodsim.inputs import parse_inputs
from prodsim.modifier import Modifier
from prodsim.naming import BlockKind
from prodsim.simulation import Simulation
from prodsim.trigger import Trigger


def _inputs(steps: int = 3):
    return parse_inputs(
        {
            "numberOfTimesteps": steps,
            "materials": {
                "steel": {"basePrice": 1},
                "plastic": {"basePrice": 1},
            },
            "products": {"widget": {"producedUnits": 1}},
        }
    )


def _simulation(*definitions, steps: int = 3, modifiers=()) -> Simulation:
    return Simulation("engine", _inputs(steps), modifiers=modifiers, block_definitions=definitions)


class TestEvaluationOrder(unittest.TestCase):
    def test_reads_attribute_declared_later(self):
        def register(block, simulation):
            block.add_attribute("a", lambda ts: block.get_value("b") + 1)
            block.add_attribute("b", lambda ts: 2)

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()
        self.assertEqual(sim.series("a"), [3.0, 3.0, 3.0])

    def test_reads_block_registered_later(self):
        def register_total(block, simulation):
            block.add_attribute("sum", lambda ts: ts.get_block(BlockKind.ENERGY).get_value("x") * 2)

        def register_energy(block, simulation):
            block.add_attribute("x", lambda ts: 21)

        sim = _simulation(
            BlockDefinition(BlockKind.TOTAL, register_total),
            BlockDefinition(BlockKind.ENERGY, register_energy),
        ).run()
        self.assertEqual(sim.get_value(0, "sum"), 42.0)

    def test_each_attribute_calculated_once_per_pass(self):
        calls = []

        def register(block, simulation):
            def base(ts):
                calls.append(ts.step)
                return 1

            block.add_attribute("base", base)
            block.add_attribute("twice", lambda ts: block.get_value("base") + block.get_value("base"))
            block.add_attribute("thrice", lambda ts: block.get_value("twice") + block.get_value("base"))

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()
        self.assertEqual(calls, [0, 1, 2])
        self.assertEqual(sim.series("thrice"), [3.0, 3.0, 3.0])

    def test_previous_timestep_and_zero_at_step_zero(self):
        def register(block, simulation):
            block.add_attribute(
                "counter", lambda ts: ts.previous_value(BlockKind.ENERGY, "counter") + 1
            )

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register), steps=4).run()
        self.assertEqual(sim.series("counter"), [1.0, 2.0, 3.0, 4.0])

    def test_parameterized_blocks_per_material(self):
        def register(block, simulation, *, material):
            block.add_attribute(f"{material}_price", lambda ts: simulation.inputs.materials[material].base_price)

        sim = _simulation(BlockDefinition(BlockKind.MATERIAL, register))
        self.assertEqual(sim.block_ids, ["steel_material", "plastic_material"])
        self.assertEqual(sim.attribute_ids, ["steel_price", "plastic_price"])

    def test_product_blocks_are_grouped_per_product(self):
        def register_production(block, simulation, *, product):
            block.add_attribute(f"{product}_made", lambda ts: 1)

        def register_storage(block, simulation, *, product):
            block.add_attribute(f"{product}_stored", lambda ts: 1)

        inputs = parse_inputs(
            {"numberOfTimesteps": 1, "products": {"widget": {"producedUnits": 1}, "gadget": {"producedUnits": 1}}}
        )
        sim = Simulation(
            "grouped",
            inputs,
            block_definitions=(
                BlockDefinition(BlockKind.PRODUCTION, register_production),
                BlockDefinition(BlockKind.STORAGE, register_storage),
            ),
        )
        self.assertEqual(
            sim.block_ids,
            ["widget_production", "widget_storage", "gadget_production", "gadget_storage"],
        )
        self.assertEqual(sim.attribute_ids, ["widget_made", "widget_stored", "gadget_made", "gadget_stored"])


class TestConstraints(unittest.TestCase):
    def test_negative_values_are_clamped(self):
        def register(block, simulation):
            block.add_attribute("clamped", lambda ts: -5)
            block.add_attribute("signed", lambda ts: -5, allow_negative=True)

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()
        self.assertEqual(sim.series("clamped"), [0.0, 0.0, 0.0])
        self.assertEqual(sim.series("signed"), [-5.0, -5.0, -5.0])

    def test_readers_see_the_clamped_value(self):
        def register(block, simulation):
            block.add_attribute("loss", lambda ts: -3)
            block.add_attribute("plus_one", lambda ts: block.get_value("loss") + 1)

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()
        self.assertEqual(sim.get_value(1, "plus_one"), 1.0)


class TestEngineErrors(unittest.TestCase):
    def test_cycle_is_reported_with_chain(self):
        def register(block, simulation):
            block.add_attribute("a", lambda ts: block.get_value("b"))
            block.add_attribute("b", lambda ts: block.get_value("c"))
            block.add_attribute("c", lambda ts: block.get_value("a"))

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register))
        with self.assertRaises(CyclicDependency) as ctx:
            sim.run()
        self.assertEqual(ctx.exception.chain, ["a", "b", "c", "a"])
        self.assertIn("a -> b -> c -> a", str(ctx.exception))
        self.assertFalse(sim.has_run)

    def test_self_reference_is_a_cycle(self):
        def register(block, simulation):
            block.add_attribute("loop", lambda ts: block.get_value("loop") + 1)

        with self.assertRaises(CyclicDependency):
            _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()

    def test_reading_a_future_timestep_is_unresolved(self):
        def register(block, simulation):
            def peek(ts):
                if ts.step + 1 < len(simulation.timesteps):
                    return simulation.timesteps[ts.step + 1].get_value("x")
                return 0

            block.add_attribute("peek", peek)
            block.add_attribute("x", lambda ts: 1)

        with self.assertRaises(UnresolvedAttribute):
            _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()

    def test_values_are_unresolved_before_run(self):
        def register(block, simulation):
            block.add_attribute("x", lambda ts: 1)

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register))
        with self.assertRaises(UnresolvedAttribute):
            sim.get_value(0, "x")
        with self.assertRaises(SimulationError):
            sim.results()

    def test_duplicate_ids_in_one_timestep(self):
        def register(block, simulation):
            block.add_attribute("shared", lambda ts: 1)

        with self.assertRaises(DuplicateAttribute):
            _simulation(
                BlockDefinition(BlockKind.ENERGY, register),
                BlockDefinition(BlockKind.LEGAL, register),
            )

    def test_missing_block_aborts_run(self):
        def register(block, simulation):
            block.add_attribute("x", lambda ts: ts.get_block(BlockKind.MATERIAL, material="copper").get_value("y"))

        with self.assertRaises(BlockNotFound):
            _simulation(BlockDefinition(BlockKind.ENERGY, register)).run()

    def test_block_lookup_requires_parameter(self):
        sim = _simulation(BlockDefinition(BlockKind.ENERGY, lambda block, simulation: None))
        with self.assertRaises(BlockNotFound):
            sim.timesteps[0].get_block(BlockKind.STORAGE)
        with self.assertRaises(UnknownAttribute):
            sim.timesteps[0].get_block(BlockKind.ENERGY).get_attribute("missing")

    def test_failed_rule_leaves_attribute_pending(self):
        def register(block, simulation):
            block.add_attribute("boom", lambda ts: 1 / 0)

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register))
        with self.assertRaises(ZeroDivisionError):
            sim.run()
        attribute = sim.timesteps[0].get_attribute("boom")
        self.assertIs(attribute.state, AttributeState.PENDING)
        self.assertEqual(sim.timesteps[0].evaluation_stack, [])

    def test_aborted_run_exposes_no_values(self):
        def register(block, simulation):
            block.add_attribute("x", lambda ts: 7)
            block.add_attribute("a", lambda ts: block.get_value("b") if ts.step == 1 else 1)
            block.add_attribute("b", lambda ts: block.get_value("a") if ts.step == 1 else 2)

        sim = _simulation(BlockDefinition(BlockKind.ENERGY, register))
        with self.assertRaises(CyclicDependency):
            sim.run()
        self.assertFalse(sim.has_run)
        # step 0 finished before the cycle in step 1, but nothing is readable
        with self.assertRaises(UnresolvedAttribute):
            sim.get_value(0, "x")
        with self.assertRaises(SimulationError):
            sim.series("x")


class TestModifierLayer(unittest.TestCase):
    @staticmethod
    def _register_base(block, simulation):
        block.add_attribute("base", lambda ts: simulation.apply_modifier(100, "base", ts))

    def _run(self, *modifiers, steps=3):
        return _simulation(
            BlockDefinition(BlockKind.ENERGY, self._register_base), steps=steps, modifiers=modifiers
        ).run()

    def test_composition_in_registration_order(self):
        sim = self._run(Modifier("plus", "base", "absolute", 20), Modifier("times", "base", "relative", 1.1))
        self.assertAlmostEqual(sim.get_value(0, "base"), 132.0)

        reversed_order = self._run(
            Modifier("times", "base", "relative", 1.1), Modifier("plus", "base", "absolute", 20)
        )
        self.assertAlmostEqual(reversed_order.get_value(0, "base"), 130.0)

    def test_set_replaces_and_later_modifiers_compose(self):
        sim = self._run(
            Modifier("double", "base", "relative", 2),
            Modifier("fixed", "base", "set", 50),
            Modifier("bump", "base", "absolute", 5),
        )
        self.assertEqual(sim.get_value(0, "base"), 55.0)

    def test_trigger_gates_modifier(self):
        sim = self._run(Modifier("mid", "base", "absolute", 1, Trigger.timestep_range(1, 1)))
        self.assertEqual(sim.series("base"), [100.0, 101.0, 100.0])

    def test_delay_injects_once_from_next_step(self):
        delay = Modifier("late", "base", "delay", 5, Trigger.timestep_range(2, 5))
        sim = self._run(delay, steps=6)
        self.assertEqual(sim.series("base"), [100.0, 100.0, 100.0, 105.0, 105.0, 105.0])
        injected = [m for m in sim.modifiers["base"] if m.name == "late@2"]
        self.assertEqual(len(injected), 1)

    def test_delay_with_longer_lag(self):
        delay = Modifier("late", "base", "delay", 5, Trigger.timestep_range(0, 5), delay_steps=3)
        sim = self._run(delay, steps=5)
        self.assertEqual(sim.series("base"), [100.0, 100.0, 100.0, 105.0, 105.0])

    def test_rerun_discards_injected_modifiers(self):
        sim = self._run(Modifier("late", "base", "delay", 5), steps=4)
        first = sim.results()
        sim.run()
        self.assertEqual(sim.results(), first)
        self.assertEqual(len(sim.modifiers["base"]), 2)

    def test_unknown_target_is_rejected_with_suggestion(self):
        sim = _simulation(BlockDefinition(BlockKind.ENERGY, self._register_base))
        with self.assertRaises(UnknownAttribute) as ctx:
            sim.add_modifier(Modifier("typo", "bsae", "absolute", 1))
        self.assertIn("base", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
