"""Contact-based transmission within a single household, workplace, or school."""

import numpy as np

from tbsim.agent import DiseaseState
from tbsim.agent import Location
from tbsim.errors import InvariantViolation


def infection_probability(infectious: int, occupants: int, beta: float, timestep: float, factor: float = 1.0) -> float:
    """Per-susceptible probability of infection for one contact period, capped at 1."""
    return min(1.0, (infectious / occupants) * beta * factor * timestep)


def contacts(population, location_type: Location, location_id: int, timestep: float, beta: float, infection_factor: float, rng: np.random.Generator) -> int:
    """
    Infect susceptible occupants of one location for one contact period.

    Parameters:

        population (Population): The population holding the location indices.
        location_type (Location): HOME, WORK or SCHOOL.
        location_id (int): Id of the household, workplace or school.
        timestep (float): Length of the contact period in days.
        beta (float): Transmission rate.
        infection_factor (float): Multiplier applied at workplaces and schools only.
        rng (numpy.random.Generator): The run's random stream.

    Returns:

        int: Number of agents newly infected (moved to TBI) at this location.
    """

    occupant_ids = population.members(location_type, location_id)
    if not occupant_ids:
        return 0

    try:
        occupants = [population.agents[agent_id] for agent_id in occupant_ids]
    except KeyError as e:
        raise InvariantViolation(f"{location_type.name.lower()} {location_id} lists unknown agent {e.args[0]}") from e

    infectious = sum(1 for agent in occupants if agent.is_infectious)
    if infectious == 0:
        return 0

    factor = 1.0 if location_type == Location.HOME else infection_factor
    probability = infection_probability(infectious, len(occupants), beta, timestep, factor)

    new_infections = 0
    for agent in occupants:
        if agent.disease_state == DiseaseState.SUSCEPTIBLE and rng.random() < probability:
            agent.disease_state = DiseaseState.TBI
            agent.tbi_time = 0.0
            new_infections += 1

    return new_infections
