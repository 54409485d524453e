from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Sequence
from uuid import uuid4

from src.catalog.domain.models.guideline import Guideline, InlineContent, MedicalSpeciality
from src.catalog.infra.db.repositories import GuidelineRepository

logger = logging.getLogger(__name__)

SEED_AUTHOR = "system"

_AMI_CONTENT = """# Acute Myocardial Infarction Management

## Initial Assessment
- Obtain 12-lead ECG within 10 minutes of arrival
- Check vital signs and oxygen saturation
- Assess for contraindications to thrombolysis

## Treatment Protocol
1. Aspirin 300mg chewed, clopidogrel 600mg loading dose, atorvastatin 80mg
2. Morphine 2.5-5mg IV PRN; GTN sublingual if systolic BP >90mmHg
3. Primary PCI preferred if available within 120 minutes, otherwise thrombolysis

## Monitoring
- Continuous cardiac monitoring
- Serial troponin levels

## Discharge Planning
- Dual antiplatelet therapy for 12 months
- Cardiac rehabilitation referral
"""

_ASTHMA_CONTENT = """# Pediatric Asthma Management

## Severity Assessment
- Mild: able to talk in sentences, peak flow >75% predicted
- Moderate: able to talk in phrases, peak flow 50-75% predicted
- Severe: unable to complete sentences, peak flow <50% predicted

## Treatment
- Salbutamol inhaler 2-10 puffs via spacer, repeat every 20 minutes for first hour
- Prednisolone 1-2mg/kg (max 40mg) for 3 days
- Severe cases: nebulized salbutamol and ipratropium, consider IV magnesium sulfate

## Discharge Criteria
- Sustained improvement for 4 hours
- Follow-up arranged within 48 hours
"""

_STROKE_CONTENT = """# Stroke Thrombolysis Protocol

## Time Targets
- Door to CT: 25 minutes
- Door to needle: 60 minutes
- Onset to treatment: <4.5 hours

## Exclusion Criteria
- Intracranial hemorrhage on CT
- Recent major surgery (<14 days)
- Active bleeding

## Treatment Protocol
- Weight-based dosing: 0.9mg/kg (max 90mg), 10% as bolus over 1 minute
- Neurological observations every 15 minutes for 2 hours
- CT head at 24 hours
"""

_SEPSIS_CONTENT = """# Adult Sepsis Recognition and Initial Management

## Screening
- Suspected infection plus NEWS2 score of 5 or more
- Escalate to senior clinician within 30 minutes

## Sepsis Six (within 1 hour)
1. Give high-flow oxygen
2. Take blood cultures
3. Give IV antibiotics
4. Give IV fluid challenge
5. Measure lactate
6. Monitor urine output
"""


def sample_guidelines(now: datetime) -> List[Guideline]:
    """Demo records for local development; each is a few minutes apart."""

    specs = [
        (
            "St George's Hospital",
            "Acute Myocardial Infarction Management",
            "Comprehensive guidelines for the management of acute myocardial infarction "
            "in the emergency department and cardiac care unit.",
            MedicalSpeciality.CARDIOLOGY,
            _AMI_CONTENT,
            ["emergency", "cardiology", "acute care", "STEMI", "NSTEMI"],
        ),
        (
            "Royal London Hospital",
            "Pediatric Asthma Management",
            "Evidence-based guidelines for the assessment and management of acute asthma in children.",
            MedicalSpeciality.PEDIATRICS,
            _ASTHMA_CONTENT,
            ["pediatrics", "respiratory", "emergency", "asthma"],
        ),
        (
            "Manchester Royal Infirmary",
            "Stroke Thrombolysis Protocol",
            "Time-critical protocol for acute stroke thrombolysis assessment and treatment.",
            MedicalSpeciality.NEUROLOGY,
            _STROKE_CONTENT,
            ["neurology", "emergency", "stroke", "thrombolysis", "time-critical"],
        ),
        (
            "St George's Hospital",
            "Adult Sepsis Recognition",
            "Screening and first-hour management of suspected sepsis in adults.",
            MedicalSpeciality.EMERGENCY,
            _SEPSIS_CONTENT,
            ["sepsis", "emergency", "antibiotics"],
        ),
    ]

    guidelines: List[Guideline] = []
    for offset, (trust, title, description, speciality, content, tags) in enumerate(specs):
        stamp = now - timedelta(minutes=5 * (len(specs) - offset))
        guidelines.append(
            Guideline(
                id=uuid4(),
                trust_name=trust,
                title=title,
                description=description,
                medical_speciality=speciality,
                source=InlineContent(text=content),
                tags=tags,
                created_by=SEED_AUTHOR,
                created_at=stamp,
                updated_at=stamp,
            )
        )
    return guidelines


def seed_sample_guidelines(
    repository: GuidelineRepository,
    guidelines: Sequence[Guideline] | None = None,
) -> int:
    """Insert demo guidelines into an empty store; returns how many were added."""

    if repository.count() > 0:
        logger.info("Guideline store already populated; skipping sample data")
        return 0

    records = list(guidelines) if guidelines is not None else sample_guidelines(datetime.now(timezone.utc))
    for guideline in records:
        repository.save(guideline)
    logger.info("Seeded %d sample guidelines", len(records))
    return len(records)
