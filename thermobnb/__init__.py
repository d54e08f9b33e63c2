"""ThermoBnB - reservation-driven thermostat automation"""
