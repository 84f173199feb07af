from ranobe.summary.coordinator import GroupedSummaryCoordinator, plan_groups

__all__ = ["GroupedSummaryCoordinator", "plan_groups"]
