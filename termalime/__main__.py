from termalime.main import run

run()
