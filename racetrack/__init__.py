"""RaceTrack: virtual races between users fed by daily distance totals."""
