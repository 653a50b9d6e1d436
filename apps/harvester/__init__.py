"""
Harvester App - Flight Listing and Track Log Acquisition

Responsibilities:
- Session login (anti-forgery token, then credentials) against the flight portal
- Offset pagination over the flight listing with a fixed takeoff filter and sort
- Per-flight concurrent download of the IGC track log
- Local persistence of flight metadata (JSON) and track log (IGC)
- Optional copy to a remote store (GCS bucket or SFTP directory)
- Redis Pub/Sub event after each completed run

Output:
- <OUTPUT_DIR>/<IDFlight>.json
- <OUTPUT_DIR>/<IDFlight>.igc
- Redis event: channel=harvester.runs, payload={type, output_dir, persisted, failed, ts}
"""
