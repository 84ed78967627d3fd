"""Household contact tracing around notified active TB cases."""

import numpy as np

from tbsim.agent import DiseaseState
from tbsim.agent import Location
from tbsim.agent import screen


def notified_households(population) -> list:
    """Households, in first-seen order, with an active case whose notification time is set."""
    households = {}
    for agent in population.agents.values():
        if agent.disease_state == DiseaseState.ACTIVE_TB and agent.notification_time > 0.0:
            households.setdefault(agent.household_id, None)

    return list(households)


def screen_household_contacts(population, params, rng: np.random.Generator) -> int:
    """
    Screen every household member of notified active cases, except active cases themselves.

    Returns:

        int: Number of screening calls made (already screened agents included).
    """

    screened = 0
    for household_id in notified_households(population):
        for agent_id in population.members(Location.HOME, household_id):
            agent = population.agents[agent_id]
            if agent.disease_state != DiseaseState.ACTIVE_TB:
                screen(agent, params, rng)
                screened += 1

    return screened
