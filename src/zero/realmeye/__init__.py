"""Player data lookups against RealmEye."""
