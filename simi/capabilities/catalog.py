"""Default capability catalogue for the SimisAI demo line."""

from __future__ import annotations

from simi.capabilities.registry import Capability, CapabilityRegistry

DEFAULT_CAPABILITIES: tuple[Capability, ...] = (
    Capability(
        token="1",
        key="medication",
        title="Medication Reminders",
        description="medication reminders and adherence tracking",
        insight=(
            "This data trail is what prevents patients from being misclassified "
            "as drug-resistant epilepsy."
        ),
    ),
    Capability(
        token="2",
        key="seizure",
        title="Seizure Tracking",
        description="seizure tracking and emergency escalation",
        insight=(
            "Longitudinal seizure data between visits is something a 15-minute "
            "appointment can never capture."
        ),
    ),
    Capability(
        token="3",
        key="mental",
        title="Mental Health Screening",
        description="mental health screening embedded in casual conversation",
        insight=(
            "30-40% of epilepsy patients have undiagnosed depression predicting "
            "non-adherence — casual check-ins get answers clinical forms never do."
        ),
    ),
    Capability(
        token="4",
        key="risk",
        title="Risk Forecasting",
        description="personalized seizure risk forecasting",
        insight="This shifts epilepsy care from reactive to preventive.",
    ),
    Capability(
        token="5",
        key="schedule",
        title="Provider Scheduling",
        description="scheduling a provider call and generating a visit summary",
        insight=(
            "The visit summary means the appointment is actually productive "
            "instead of starting from scratch."
        ),
    ),
    Capability(
        token="6",
        key="caregiver",
        title="Caregiver Coordination",
        description="caregiver coordination with patient-controlled privacy",
        insight=(
            "In communities where epilepsy carries stigma, patient-controlled "
            "privacy isn't a feature — it's a requirement."
        ),
    ),
    Capability(
        token="7",
        key="refill",
        title="Refill Reminders",
        description="medication refill reminders",
        insight=(
            "Running out of AEDs is one of the most preventable causes of "
            "breakthrough seizures."
        ),
    ),
    Capability(
        token="8",
        key="sideeffect",
        title="Side Effect Monitoring",
        description="side effect monitoring",
        insight=(
            "Patients who feel bad from medication stop taking it without telling "
            "anyone — this surfaces that before it becomes non-adherence."
        ),
    ),
    Capability(
        token="9",
        key="language",
        title="Language Support",
        description=(
            "multilingual adaptability — if the user writes in another language, "
            "respond fully in that language with culturally native phrasing to "
            "demonstrate this capability"
        ),
        insight=(
            "This reaches the 40% of low-income patients every other digital "
            "health tool leaves out."
        ),
    ),
)


def default_registry() -> CapabilityRegistry:
    return CapabilityRegistry(DEFAULT_CAPABILITIES)
