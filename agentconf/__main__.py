from agentconf.services.config.service import run

run()
