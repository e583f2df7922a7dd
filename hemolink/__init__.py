"""Blood donor eligibility matching, alert dispatch and suggestions."""
