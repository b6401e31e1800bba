"""Provider Ratings API - cached Trustpilot and Google ratings for transfer providers."""
