SIDEDATA = (
    "[ARM]\n{\n\tname=Arm;\n\tnameprefix=ARM;\n\tcommander=ARMCOM;\n\tintgaf=ARMINT;\n"
    "\tenergycolor=166;\n\tmetalcolor=110;\n\tfont=armfont;\n}\n"
    "[CORE]\n{\n\tname=Core;\n\tnameprefix=COR;\n\tcommander=CORCOM;\n\tintgaf=CORINT;\n"
    "\tenergycolor=166;\n\tmetalcolor=110;\n\tfont=corfont;\n}\n"
    "[CANBUILD]\n{\n\t[ARMCOM]\n\t{\n\t\tcanbuild1=ARMSOLAR;\n\t\tcanbuild2=ARMMSTOR;\n"
    "\t\tcanbuild3=ARMESTOR;\n\t\tcanbuild4=ARMMEX;\n\t\tcanbuild5=ARMLAB;\n\t}\n"
    "\t[CORCOM]\n\t{\n\t\tcanbuild1=CORSOLAR;\n\t\tcanbuild2=CORMSTOR;\n"
    "\t\tcanbuild3=CORESTOR;\n\t\tcanbuild4=CORMEX;\n\t\tcanbuild5=CORLAB;\n\t}\n}\n"
).encode('latin1')
