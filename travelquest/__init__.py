"""TravelQuest gamified learning backend."""
