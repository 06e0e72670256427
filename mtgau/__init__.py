"""MTG AU Marketplace — card image & price resolution core."""
