"""Ad-hours bidding server."""
