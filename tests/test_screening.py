"""Tests for household contact screening."""

import unittest

from tbsim.agent import Agent
from tbsim.agent import DiseaseState
from tbsim.agent import Gender
from tbsim.config import Config
from tbsim.population import Population
from tbsim.screening import notified_households
from tbsim.screening import screen_household_contacts

PARAMS = Config({"screening_test_sensitivity": 0.9, "tpt_completion_rate": 0.8})


class ScriptedRNG:
    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def add(population, agent_id, household_id, state, **kwargs):
    population.add_agent(Agent(id=agent_id, gender=Gender.FEMALE, age=30.0, household_id=household_id, disease_state=state, **kwargs))


class TestScreening(unittest.TestCase):
    def setUp(self):
        self.population = Population()
        # household 1 has a notified case, household 2 an un-notified one
        add(self.population, 1, 1, DiseaseState.ACTIVE_TB, infectious=True, notification_time=80.0)
        add(self.population, 2, 1, DiseaseState.TBI)
        add(self.population, 3, 1, DiseaseState.SUSCEPTIBLE)
        add(self.population, 4, 2, DiseaseState.ACTIVE_TB, infectious=True)
        add(self.population, 5, 2, DiseaseState.TBI)

    def test_notified_households(self):
        assert notified_households(self.population) == [1]

    def test_screens_contacts_of_notified_cases(self):
        screened = screen_household_contacts(self.population, PARAMS, ScriptedRNG(0.1, 0.1))
        assert screened == 2
        agents = self.population.agents
        assert agents[2].screened and agents[2].on_tpt
        assert agents[3].screened
        # the index case and other households are untouched
        assert not agents[1].screened
        assert agents[1].disease_state == DiseaseState.ACTIVE_TB
        assert not agents[5].screened

    def test_screening_is_idempotent(self):
        screen_household_contacts(self.population, PARAMS, ScriptedRNG(0.1, 0.1))
        before = [(a.disease_state, a.screened, a.on_tpt) for a in self.population.agents.values()]
        screen_household_contacts(self.population, PARAMS, ScriptedRNG())
        after = [(a.disease_state, a.screened, a.on_tpt) for a in self.population.agents.values()]
        assert before == after

    def test_no_notified_cases(self):
        self.population.agents[1].notification_time = 0.0
        assert screen_household_contacts(self.population, PARAMS, ScriptedRNG()) == 0


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
