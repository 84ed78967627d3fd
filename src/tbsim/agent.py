"""An individual in the TB simulation and the natural-history transitions that advance it.

The disease state is an ``IntEnum``; ``infectious``, ``screened`` and ``on_tpt`` are
independent flags carried alongside it. Every stochastic function takes the random
stream explicitly as ``rng`` (a ``numpy.random.Generator``).

Timers are in days. A timer of 0 means "not started"; in particular an ActiveTB case
with ``notification_time == 0`` has not been notified yet.
"""

from dataclasses import dataclass
from enum import Enum
from enum import IntEnum

import numpy as np

from tbsim.errors import DataFormatError


class Gender(IntEnum):
    MALE = 0
    FEMALE = 1

    @classmethod
    def from_label(cls, label: str) -> "Gender":
        """
        Map the synthetic population's ``SexLabel`` ("Male" or "Female") to a Gender.

        Raises:

            DataFormatError: For any other label, including missing values.
        """

        text = label.strip() if isinstance(label, str) else label
        if text == "Male":
            return cls.MALE
        if text == "Female":
            return cls.FEMALE

        raise DataFormatError(f"SexLabel must be 'Male' or 'Female', got {label!r}")


class DiseaseState(IntEnum):
    SUSCEPTIBLE = 0
    TBI = 1
    ACTIVE_TB = 2
    TREATMENT = 3

    @property
    def label(self) -> str:
        """Column name used for this state in output tables."""
        return _STATE_LABELS[self]


_STATE_LABELS = {
    DiseaseState.SUSCEPTIBLE: "Susceptible",
    DiseaseState.TBI: "TBI",
    DiseaseState.ACTIVE_TB: "ActiveTB",
    DiseaseState.TREATMENT: "Treatment",
}


class Location(IntEnum):
    HOME = 0
    WORK = 1
    SCHOOL = 2


class Period(Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


# natural history constants, all in days unless noted
TPT_DURATION = 180.0
NOTIFICATION_DELAY = 78.0
NOTIFICATION_PROBABILITY = 0.5
TREATMENT_DURATION = 180.0
NONINFECTIOUS_AFTER = 14.0
LIFETIME_PROGRESSION = 0.10  # fraction of TBI cases that ever progress
DAYS_PER_YEAR = 365.0

# (upper bound in years since infection, conditional probability of progressing now)
# derived from cumulative progression of 45/62/83/99/100% of eventual progressors
PROGRESSION_BANDS = (
    (1.0, 0.45),
    (2.0, (0.62 - 0.45) / (1.0 - 0.45)),
    (5.0, (0.83 - 0.62) / (1.0 - 0.62)),
    (12.0, (0.99 - 0.83) / (1.0 - 0.83)),
    (np.inf, (1.0 - 0.99) / (1.0 - 0.99)),
)


@dataclass
class Agent:
    id: int
    gender: Gender
    age: float
    household_id: int
    workplace_id: int = 0
    school_id: int = 0
    disease_state: DiseaseState = DiseaseState.SUSCEPTIBLE

    tbi_time: float = 0.0
    active_time: float = 0.0
    treatment_time: float = 0.0
    notification_time: float = 0.0
    infectious: bool = False
    screened: bool = False
    on_tpt: bool = False
    tpt_time: float = 0.0

    @property
    def is_infectious(self) -> bool:
        """True if this agent can transmit: active, or in the first two weeks of treatment."""
        transmissible = self.disease_state == DiseaseState.ACTIVE_TB or (
            self.disease_state == DiseaseState.TREATMENT and self.treatment_time < NONINFECTIOUS_AFTER
        )
        return transmissible and self.infectious


def location(agent: Agent, period: Period):
    """
    Return where the agent is during the given period of the day.

    Parameters:

        agent (Agent): The agent to place.
        period (Period): ``Period.MORNING`` or ``Period.AFTERNOON``.

    Returns:

        tuple: ``(Location, location_id)``.
    """

    home = (Location.HOME, agent.household_id)

    if agent.age < 4.0 or agent.age >= 65.0:
        return home

    if 4.0 <= agent.age < 18.0 and agent.school_id != 0:
        return (Location.SCHOOL, agent.school_id) if period == Period.MORNING else home

    if agent.workplace_id != 0:
        return (Location.WORK, agent.workplace_id) if period == Period.MORNING else home

    return home


def will_progress_to_active(agent: Agent, rng: np.random.Generator) -> bool:
    """Decide whether a TBI agent progresses to active disease during this step.

    One draw selects the 10% of infections that ever progress; a second draw
    tests the conditional probability for the agent's years since infection.
    """

    if rng.random() > LIFETIME_PROGRESSION:
        return False

    years = agent.tbi_time / DAYS_PER_YEAR
    for upper, probability in PROGRESSION_BANDS:
        if years <= upper:
            return rng.random() <= probability

    return False  # pragma: no cover


def advance_disease_state(agent: Agent, timestep: float, params, rng: np.random.Generator) -> bool:
    """
    Advance one agent's disease state by one timestep.

    Parameters:

        agent (Agent): The agent to update in place.
        timestep (float): Length of the step in days.
        params: Configuration providing ``tpt_efficacy``, ``treatment_success_rate`` and ``mortality_rate``.
        rng (numpy.random.Generator): The run's random stream.

    Returns:

        bool: True if the agent died of TB at the end of treatment. The agent is left in
        Treatment; removing it from the population is the caller's job.
    """

    state = agent.disease_state
    if state == DiseaseState.TBI:
        agent.tbi_time += timestep
    elif state == DiseaseState.ACTIVE_TB:
        agent.active_time += timestep
    elif state == DiseaseState.TREATMENT:
        agent.treatment_time += timestep

    if agent.on_tpt:
        agent.tpt_time += timestep

    if state == DiseaseState.TBI:
        if agent.on_tpt and agent.tpt_time >= TPT_DURATION:
            agent.on_tpt = False
            if rng.random() <= params.tpt_efficacy:
                agent.disease_state = DiseaseState.SUSCEPTIBLE
                agent.tbi_time = 0.0
                return False

        if will_progress_to_active(agent, rng):
            agent.disease_state = DiseaseState.ACTIVE_TB
            agent.infectious = True
            agent.active_time = 0.0

    elif state == DiseaseState.ACTIVE_TB:
        if agent.notification_time == 0.0 and agent.active_time >= NOTIFICATION_DELAY and rng.random() <= NOTIFICATION_PROBABILITY:
            agent.notification_time = agent.active_time
            agent.disease_state = DiseaseState.TREATMENT
            agent.treatment_time = 0.0

    elif state == DiseaseState.TREATMENT:
        if agent.treatment_time >= TREATMENT_DURATION:
            outcome = rng.random()
            if outcome < params.treatment_success_rate:
                agent.disease_state = DiseaseState.SUSCEPTIBLE
                agent.infectious = False
                agent.active_time = 0.0
                agent.treatment_time = 0.0
                agent.notification_time = 0.0
            elif outcome < params.treatment_success_rate + params.mortality_rate:
                return True
            else:
                # treatment failure, back to untreated active disease
                agent.disease_state = DiseaseState.ACTIVE_TB
                agent.active_time = 0.0
                agent.treatment_time = 0.0
                agent.notification_time = 0.0
        elif agent.treatment_time >= NONINFECTIOUS_AFTER:
            agent.infectious = False

    return False


def start_tpt(agent: Agent, params, rng: np.random.Generator) -> None:
    """Start TB preventive therapy for a TBI agent who will complete the course."""
    if agent.disease_state != DiseaseState.TBI:
        return

    if rng.random() <= params.tpt_completion_rate:
        agent.on_tpt = True
        agent.tpt_time = 0.0

    return


def screen(agent: Agent, params, rng: np.random.Generator) -> None:
    """
    Screen an agent once: detected TBI starts TPT, detected active TB starts treatment.

    Agents already screened are left unchanged.
    """

    if agent.screened:
        return

    agent.screened = True

    if agent.disease_state == DiseaseState.TBI and rng.random() <= params.screening_test_sensitivity:
        start_tpt(agent, params, rng)
    elif agent.disease_state == DiseaseState.ACTIVE_TB and rng.random() <= params.screening_test_sensitivity:
        agent.disease_state = DiseaseState.TREATMENT
        agent.treatment_time = 0.0
        agent.notification_time = 0.0

    return


def age(agent: Agent, days: float) -> None:
    """Age an agent by ``days``."""
    agent.age += days / DAYS_PER_YEAR
