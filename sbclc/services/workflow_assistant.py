"""
Workflow Assistant — read-only guidance for monitoring screens.

Two entry points:
  - ``summarize``:  progress, ordered steps and what to do next for one
                    booking's milestone instances
  - ``guide``:      static playbook (steps, tips, best practices, quick
                    actions) for a service type

Nothing here touches the database; callers pass instances in.
"""

import logging

from sbclc.core.enums import MilestoneStatus, ServiceType, parse_enum
from sbclc.services.milestone_tracker import compute_progress, compute_schedule, field_of

logger = logging.getLogger(__name__)


# ── Static playbooks ─────────────────────────────────────────────────────────

IMPORT_STEPS = [
    {
        "id": "vessel_arrival",
        "title": "Vessel Arrival Confirmation",
        "description": "Confirm vessel arrival and container discharge",
        "priority": "high",
        "estimated_time": "2-4 hours",
        "dependencies": [],
        "tips": [
            "Check shipping line website for real-time updates",
            "Coordinate with port operations for discharge schedule",
            "Prepare customs documentation in advance",
        ],
    },
    {
        "id": "customs_clearance",
        "title": "Customs Clearance Process",
        "description": "Submit documents and process customs clearance",
        "priority": "urgent",
        "estimated_time": "1-3 days",
        "dependencies": ["vessel_arrival"],
        "tips": [
            "Ensure all documents are complete before submission",
            "Monitor for any examination requirements",
            "Prepare for potential duty assessments",
        ],
    },
    {
        "id": "container_release",
        "title": "Container Release & Delivery",
        "description": "Release containers and arrange delivery",
        "priority": "high",
        "estimated_time": "4-8 hours",
        "dependencies": ["customs_clearance"],
        "tips": [
            "Coordinate with trucking company for pickup",
            "Verify delivery address and contact details",
            "Prepare delivery receipts and POD forms",
        ],
    },
    {
        "id": "documentation",
        "title": "Final Documentation",
        "description": "Complete all documentation and billing",
        "priority": "medium",
        "estimated_time": "2-4 hours",
        "dependencies": ["container_release"],
        "tips": [
            "Collect all original documents",
            "Prepare final billing statement",
            "Archive documents for future reference",
        ],
    },
]

DOMESTIC_STEPS = [
    {
        "id": "booking_confirmation",
        "title": "Booking Confirmation",
        "description": "Confirm booking details and schedule",
        "priority": "high",
        "estimated_time": "30 minutes",
        "dependencies": [],
        "tips": [
            "Verify pickup and delivery addresses",
            "Confirm cargo details and special requirements",
            "Schedule appropriate vehicle type",
        ],
    },
    {
        "id": "dispatch_coordination",
        "title": "Dispatch Coordination",
        "description": "Coordinate with driver and schedule pickup",
        "priority": "high",
        "estimated_time": "1-2 hours",
        "dependencies": ["booking_confirmation"],
        "tips": [
            "Brief driver on cargo handling requirements",
            "Provide contact details for pickup/delivery",
            "Ensure proper documentation is prepared",
        ],
    },
    {
        "id": "transit_monitoring",
        "title": "Transit Monitoring",
        "description": "Monitor shipment progress and updates",
        "priority": "medium",
        "estimated_time": "Ongoing",
        "dependencies": ["dispatch_coordination"],
        "tips": [
            "Maintain regular contact with driver",
            "Monitor GPS tracking if available",
            "Be prepared for route changes or delays",
        ],
    },
    {
        "id": "delivery_completion",
        "title": "Delivery Completion",
        "description": "Confirm delivery and collect POD",
        "priority": "high",
        "estimated_time": "30 minutes",
        "dependencies": ["transit_monitoring"],
        "tips": [
            "Verify cargo condition upon delivery",
            "Collect signed proof of delivery",
            "Update system with delivery confirmation",
        ],
    },
]

BEST_PRACTICES = {
    "import": [
        {
            "title": "Document Preparation",
            "description": "Prepare all customs documents before vessel arrival",
            "impact": "Reduces clearance time by 40%",
        },
        {
            "title": "Proactive Communication",
            "description": "Maintain regular contact with all stakeholders",
            "impact": "Improves customer satisfaction by 25%",
        },
        {
            "title": "Real-time Tracking",
            "description": "Use tracking systems for container monitoring",
            "impact": "Reduces delays by 30%",
        },
    ],
    "domestic": [
        {
            "title": "Route Optimization",
            "description": "Plan efficient routes to minimize transit time",
            "impact": "Reduces delivery time by 20%",
        },
        {
            "title": "Driver Communication",
            "description": "Maintain regular contact with drivers",
            "impact": "Improves delivery accuracy by 15%",
        },
        {
            "title": "Preventive Maintenance",
            "description": "Regular vehicle maintenance prevents breakdowns",
            "impact": "Reduces delays by 35%",
        },
    ],
}

_TIPS = {step["id"]: step["tips"] for step in IMPORT_STEPS + DOMESTIC_STEPS}


def _playbook_kind(service_type: ServiceType) -> str:
    return "domestic" if service_type.is_domestic else "import"


def quick_actions(service_type, selected_count: int = 0) -> list[dict]:
    """Context actions; bulk update only appears when bookings are selected."""
    st = parse_enum(ServiceType, service_type, "service_type")
    actions = []
    if selected_count > 0:
        actions.append({
            "title": "Bulk Status Update",
            "description": f"Update status for {selected_count} selected bookings",
            "action": "bulk_update",
        })
    if st.is_domestic:
        actions.extend([
            {
                "title": "Driver Assignment",
                "description": "Assign drivers to pending bookings",
                "action": "driver_assignment",
            },
            {
                "title": "Route Optimization",
                "description": "Optimize delivery routes",
                "action": "route_optimization",
            },
        ])
    else:
        actions.extend([
            {
                "title": "Check Vessel Schedule",
                "description": "View latest vessel arrival information",
                "action": "vessel_schedule",
            },
            {
                "title": "Customs Status Check",
                "description": "Check customs clearance status",
                "action": "customs_check",
            },
        ])
    return actions


def guide(service_type, selected_count: int = 0) -> dict:
    st = parse_enum(ServiceType, service_type, "service_type")
    kind = _playbook_kind(st)
    return {
        "service_type": st.value,
        "type": kind,
        "title": f"{kind.title()} Workflow Assistant",
        "steps": DOMESTIC_STEPS if st.is_domestic else IMPORT_STEPS,
        "best_practices": BEST_PRACTICES[kind],
        "quick_actions": quick_actions(st, selected_count),
    }


# ── Per-booking summary ──────────────────────────────────────────────────────


def next_actionable_steps(instances) -> list:
    """Pending/in-progress steps whose earlier required steps are all done.

    Walks in sequence order; once a required step is not completed every
    later step is held back.
    """
    ordered = sorted(instances or [], key=lambda i: (field_of(i, "sequence_order") or 0, field_of(i, "id") or 0))
    actionable = []
    for inst in ordered:
        status = field_of(inst, "status")
        if status in (MilestoneStatus.PENDING, MilestoneStatus.IN_PROGRESS):
            actionable.append(inst)
        if field_of(inst, "is_required") and status != MilestoneStatus.COMPLETED:
            break
    return actionable


def summarize(service_type, instances, today=None, booking_date=None) -> dict:
    st = parse_enum(ServiceType, service_type, "service_type")
    instances = list(instances or [])
    ordered = sorted(instances, key=lambda i: (field_of(i, "sequence_order") or 0, field_of(i, "id") or 0))
    schedule = {s["milestone_code"]: s for s in compute_schedule(booking_date, ordered, today)}

    steps = []
    for inst in ordered:
        code = field_of(inst, "milestone_code")
        sched = schedule.get(code, {})
        steps.append({
            "milestone_code": code,
            "milestone_name": field_of(inst, "milestone_name"),
            "sequence_order": field_of(inst, "sequence_order"),
            "status": field_of(inst, "status"),
            "priority": field_of(inst, "priority"),
            "is_required": 1 if field_of(inst, "is_required") else 0,
            "due_date": sched.get("due_date"),
            "notify_at": sched.get("notify_at"),
            "overdue": sched.get("overdue", False),
            "reminder_due": sched.get("reminder_due", False),
            "tips": _TIPS.get(code, []),
        })

    actionable = [field_of(i, "milestone_code") for i in next_actionable_steps(ordered)]
    required_remaining = sum(
        1 for i in ordered
        if field_of(i, "is_required") and field_of(i, "status") != MilestoneStatus.COMPLETED
    )

    return {
        "service_type": st.value,
        "progress": compute_progress(ordered),
        "steps": steps,
        "next_actionable_steps": actionable,
        "next_step": actionable[0] if actionable else None,
        "blocked_steps": [s["milestone_code"] for s in steps if s["status"] == MilestoneStatus.BLOCKED],
        "required_remaining": required_remaining,
        "is_complete": bool(ordered) and required_remaining == 0,
        "best_practices": BEST_PRACTICES[_playbook_kind(st)],
    }
