"""
Portfolio balance for placement adjustments

When every placement of a campaign is pushed up, the keyword bids underneath
are likely too high: one placement should then sit at 0% so the campaign
keeps a baseline.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, List, Set, Tuple

from .rules import Action, RuleResult


class PortfolioBalancer:
    """
    Second pass over a campaign's placement proposals

    Only placements that produced a proposal in this run are members.
    Placements held back by the band or the cooldown keep their current value
    and are not counted, so proposals of 30% and 40% next to an in-band
    sibling at 50% are left unbalanced.
    """

    def __init__(self, config: Dict[str, Any]):
        self.logger = logging.getLogger(__name__)
        self.min_placements = config.get('portfolio_min_placements', 3)

    def needs_balance(self, proposals: List[RuleResult]) -> bool:
        return (
            len(proposals) >= self.min_placements
            and all(p.recommended_value > 0 for p in proposals)
        )

    def balance_campaign(self, proposals: List[RuleResult]) -> Tuple[List[RuleResult], bool]:
        """
        Force the lowest proposed adjustment of one campaign to 0%

        Args:
            proposals: Placement proposals of a single campaign

        Returns:
            Tuple of (proposals, whether the campaign was balanced)
        """
        if not self.needs_balance(proposals):
            return proposals, False

        lowest = min(proposals, key=lambda p: (p.recommended_value, p.entity.targeting))
        forced = replace(
            lowest,
            recommended_value=0.0,
            action=Action.DECREASE,
            reason=(
                f"{lowest.reason}. Portfolio balance: all {len(proposals)} placements had positive "
                f"adjustments, lowest ({lowest.entity.targeting}, {lowest.recommended_value:.0f}%) "
                f"forced to 0% (keyword bids may be too high)"
            ),
            metadata={**lowest.metadata, 'portfolio_balanced': True,
                      'pre_balance_value': lowest.recommended_value},
        )
        self.logger.info(
            f"Portfolio balance for campaign {lowest.entity.campaign_id}: "
            f"{lowest.entity.targeting} {lowest.recommended_value:.0f}% -> 0%"
        )

        balanced = []
        for proposal in proposals:
            if proposal is lowest:
                # A placement already at 0% would otherwise become a no-op
                if forced.current_value != 0:
                    balanced.append(forced)
            else:
                balanced.append(proposal)
        return balanced, True

    def balance(self, proposals: List[RuleResult]) -> Tuple[List[RuleResult], Set[str]]:
        """
        Apply portfolio balance to every campaign in a list of placement proposals

        Returns:
            Tuple of (balanced proposals, campaign ids that were balanced)
        """
        by_campaign: Dict[str, List[RuleResult]] = defaultdict(list)
        for proposal in proposals:
            by_campaign[proposal.entity.campaign_id].append(proposal)

        results: List[RuleResult] = []
        balanced_campaigns: Set[str] = set()
        for campaign_id in sorted(by_campaign):
            campaign_results, was_balanced = self.balance_campaign(by_campaign[campaign_id])
            results.extend(campaign_results)
            if was_balanced:
                balanced_campaigns.add(campaign_id)

        return results, balanced_campaigns
