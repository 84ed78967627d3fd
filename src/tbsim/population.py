"""Population container: the agents, their location indices, and disease-state counters.

Location indices map a household, workplace or school id to the list of member
agent ids, in insertion order. Agents and buckets are kept in insertion-ordered
containers so that a seeded run visits them, and so consumes random draws, in the
same order every time.

Location ids on an agent must only be changed through the Population methods
here so both sides of the index stay in sync.
"""

from typing import Dict
from typing import List

import click
import numpy as np
import pandas as pd
from tqdm import tqdm

from tbsim.agent import Agent
from tbsim.agent import DiseaseState
from tbsim.agent import Gender
from tbsim.agent import Location
from tbsim.errors import DataFormatError
from tbsim.errors import InvariantViolation

SYNTHETIC_COLUMNS = ("SexLabel", "Age", "HHID", "WorkPlaceID", "SchoolID", "AgentID")
SEX_LABELS = ("Male", "Female")

WORKING_AGES = (18.0, 65.0)
MAX_INITIAL_TBI_DAYS = 12.0 * 365.0
MAX_INITIAL_ACTIVE_DAYS = 78.0


class Population:
    """All agents in a run plus household, workplace and school membership."""

    def __init__(self, demographics=None, verbose: bool = False):
        self.agents: Dict[int, Agent] = {}
        self.households: Dict[int, List[int]] = {}
        self.workplaces: Dict[int, List[int]] = {}
        self.schools: Dict[int, List[int]] = {}

        self.workplace_ids: List[int] = []
        self.school_ids: List[int] = []

        # fertility, mortality and sex-ratio tables, see tbsim.demographics.DemographicTables
        self.demographics = demographics

        self.susceptible_count = 0
        self.tbi_count = 0
        self.active_count = 0
        self.treatment_count = 0

        self.verbose = verbose

        return

    def __len__(self) -> int:
        return len(self.agents)

    def __contains__(self, agent_id) -> bool:
        return agent_id in self.agents

    def _index(self, location: Location) -> Dict[int, List[int]]:
        if location == Location.HOME:
            return self.households
        if location == Location.WORK:
            return self.workplaces
        if location == Location.SCHOOL:
            return self.schools
        raise ValueError(f"Unknown location type: {location!r}")

    def members(self, location: Location, location_id: int) -> List[int]:
        """Return the ordered agent ids at a location (empty if the location is unknown)."""
        return self._index(location).get(location_id, [])

    def load(self, rows: pd.DataFrame, params, rng: np.random.Generator) -> None:
        """
        Create agents from the synthetic population table.

        Parameters:

            rows (pd.DataFrame): One row per agent with columns SexLabel, Age, HHID, WorkPlaceID, SchoolID, AgentID.
            params: Configuration providing ``initial_tbi_percentage``, ``initial_active_tbi_percentage``,
                ``men_working_percentage`` and ``women_working_percentage``.
            rng (numpy.random.Generator): The run's random stream.

        Raises:

            DataFormatError: If a required column is missing or a SexLabel is not "Male" or "Female".
        """

        missing = [column for column in SYNTHETIC_COLUMNS if column not in rows.columns]
        if missing:
            raise DataFormatError(f"Synthetic population is missing column(s): {', '.join(missing)}")

        labels = rows["SexLabel"].astype(str).str.strip()
        invalid = rows.loc[~labels.isin(SEX_LABELS), "SexLabel"]
        if not invalid.empty:
            raise DataFormatError(
                f"Synthetic population has {len(invalid):,} row(s) with a SexLabel other than 'Male' or 'Female', e.g., {invalid.iloc[0]!r}"
            )

        workplaces = rows["WorkPlaceID"].fillna(0).astype(np.int64)
        schools = rows["SchoolID"].fillna(0).astype(np.int64)
        self.workplace_ids = [int(i) for i in workplaces.unique() if i > 0]
        self.school_ids = [int(i) for i in schools.unique() if i > 0]

        total = len(rows)
        num_tbi = round(total * params.initial_tbi_percentage / 100.0)
        num_active = round(total * params.initial_active_tbi_percentage / 100.0)

        # active cases take the first slots, so they come out of the TBI allotment
        states = np.full(total, DiseaseState.SUSCEPTIBLE, dtype=np.int8)
        states[:num_tbi] = DiseaseState.TBI
        states[:num_active] = DiseaseState.ACTIVE_TB
        rng.shuffle(states)

        men_working = params.men_working_percentage / 100.0
        women_working = params.women_working_percentage / 100.0

        records = zip(
            rows["SexLabel"],
            rows["Age"].astype(float),
            rows["HHID"].astype(np.int64),
            workplaces,
            schools,
            rows["AgentID"].astype(np.int64),
            states,
        )
        for label, age, household_id, workplace_id, school_id, agent_id, state in tqdm(
            records, total=total, desc="Initializing agents", disable=not self.verbose
        ):
            gender = Gender.from_label(label)
            workplace_id = int(workplace_id)

            if workplace_id != 0 and WORKING_AGES[0] <= age < WORKING_AGES[1]:
                working = men_working if gender == Gender.MALE else women_working
                if rng.random() > working:
                    workplace_id = 0

            agent = Agent(
                id=int(agent_id),
                gender=gender,
                age=float(age),
                household_id=int(household_id),
                workplace_id=workplace_id,
                school_id=int(school_id),
                disease_state=DiseaseState(int(state)),
            )

            if agent.disease_state == DiseaseState.TBI:
                agent.tbi_time = rng.random() * MAX_INITIAL_TBI_DAYS
            elif agent.disease_state == DiseaseState.ACTIVE_TB:
                agent.active_time = rng.random() * MAX_INITIAL_ACTIVE_DAYS
                agent.infectious = True

            self.add_agent(agent)

        self.recompute_counters()

        if self.verbose:
            click.echo(f"Initialized {len(self.agents):,} agents")
            click.echo(
                f"Initial disease states: {self.susceptible_count:,} susceptible, {self.tbi_count:,} TBI, {self.active_count:,} active TB"
            )

        return

    def add_agent(self, agent: Agent) -> None:
        """Insert an agent into the agents map and its household/workplace/school buckets."""
        if agent.id in self.agents:
            raise InvariantViolation(f"Agent {agent.id} is already in the population")

        self.agents[agent.id] = agent
        self.households.setdefault(agent.household_id, []).append(agent.id)
        if agent.workplace_id != 0:
            self.workplaces.setdefault(agent.workplace_id, []).append(agent.id)
        if agent.school_id != 0:
            self.schools.setdefault(agent.school_id, []).append(agent.id)

        return

    def remove_agent(self, agent_id: int) -> None:
        """Remove an agent and its id from every location index. Unknown ids are ignored."""
        agent = self.agents.pop(agent_id, None)
        if agent is None:
            return

        _detach(self.households, agent.household_id, agent_id)
        if agent.workplace_id != 0:
            _detach(self.workplaces, agent.workplace_id, agent_id)
        if agent.school_id != 0:
            _detach(self.schools, agent.school_id, agent_id)

        return

    def reassign_workplace(self, agent: Agent, rng: np.random.Generator) -> None:
        """Move an agent to a workplace drawn uniformly from all known workplaces."""
        if not self.workplace_ids:
            return

        if agent.workplace_id != 0:
            _detach(self.workplaces, agent.workplace_id, agent.id)
        agent.workplace_id = self.workplace_ids[rng.integers(len(self.workplace_ids))]
        self.workplaces.setdefault(agent.workplace_id, []).append(agent.id)

        return

    def reassign_school(self, agent: Agent, rng: np.random.Generator) -> None:
        """Move an agent to a school drawn uniformly from all known schools."""
        if not self.school_ids:
            return

        if agent.school_id != 0:
            _detach(self.schools, agent.school_id, agent.id)
        agent.school_id = self.school_ids[rng.integers(len(self.school_ids))]
        self.schools.setdefault(agent.school_id, []).append(agent.id)

        return

    def next_agent_id(self) -> int:
        """Id for a newly created agent: one more than the largest live id."""
        return max(self.agents) + 1 if self.agents else 1

    def recompute_counters(self) -> None:
        """Re-tally the four disease-state counters from the live agents."""
        tally = [0, 0, 0, 0]
        for agent in self.agents.values():
            tally[agent.disease_state] += 1

        self.susceptible_count, self.tbi_count, self.active_count, self.treatment_count = tally

        return

    def counts(self) -> Dict[str, int]:
        """Current counter values keyed by output column name."""
        return {
            DiseaseState.SUSCEPTIBLE.label: self.susceptible_count,
            DiseaseState.TBI.label: self.tbi_count,
            DiseaseState.ACTIVE_TB.label: self.active_count,
            DiseaseState.TREATMENT.label: self.treatment_count,
        }

    def check_invariants(self) -> None:
        """
        Verify that the agents map and the three location indices agree.

        Raises:

            InvariantViolation: If an agent is missing from its buckets or a bucket references
                an agent that is not, or no longer, a member.
        """

        for agent in self.agents.values():
            for location, location_id in (
                (Location.HOME, agent.household_id),
                (Location.WORK, agent.workplace_id),
                (Location.SCHOOL, agent.school_id),
            ):
                if location != Location.HOME and location_id == 0:
                    continue
                if agent.id not in self.members(location, location_id):
                    raise InvariantViolation(f"Agent {agent.id} is missing from {location.name.lower()} {location_id}")

        for location, attribute in ((Location.HOME, "household_id"), (Location.WORK, "workplace_id"), (Location.SCHOOL, "school_id")):
            for location_id, agent_ids in self._index(location).items():
                for agent_id in agent_ids:
                    agent = self.agents.get(agent_id)
                    if agent is None or getattr(agent, attribute) != location_id:
                        raise InvariantViolation(f"{location.name.lower()} {location_id} lists agent {agent_id} which does not belong there")

        return


def _detach(index: Dict[int, List[int]], location_id: int, agent_id: int) -> None:
    bucket = index.get(location_id)
    if bucket is not None and agent_id in bucket:
        bucket.remove(agent_id)

    return
